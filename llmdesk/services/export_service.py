"""Export of the provider catalog as a versioned backup document."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from llmdesk.config import settings
from llmdesk.schemas.catalog import CatalogDocument, Metadata, Provider
from llmdesk.schemas.results import ExportResult
from llmdesk.services.encryption_service import encrypt_with_passphrase
from llmdesk.services.file_source import FileSink
from llmdesk.services.storage_service import ProviderStore
from llmdesk.services.validation_service import SUPPORTED_SCHEMA_VERSION

logger = logging.getLogger(__name__)

EXPORT_DESCRIPTION = "LLM Desk configuration export"


def utc_timestamp() -> str:
    """Current UTC time as an ISO 8601 string, e.g. ``2026-10-19T08:30:00Z``."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class ExportService:
    """Builds backup documents from the stored catalog and writes them out."""

    def __init__(
        self,
        store: ProviderStore,
        generator: Optional[str] = None,
        clock: Callable[[], str] = utc_timestamp,
    ):
        """Initialize export service.

        Args:
            store: Storage collaborator to read providers from.
            generator: Tag written to ``metadata.generator``.
            clock: Returns the timestamp written to the metadata.
        """
        self.store = store
        self.generator = generator or settings.generator
        self.clock = clock

    def build_document(self, providers: Sequence[Provider]) -> CatalogDocument:
        """Build a document from ``providers``.

        Depends only on its argument and the clock: two exports of the same
        providers differ only in the timestamps.
        """
        now = self.clock()
        return CatalogDocument(
            version=SUPPORTED_SCHEMA_VERSION,
            metadata=Metadata(
                created_at=now,
                modified_at=now,
                generator=self.generator,
                description=EXPORT_DESCRIPTION,
            ),
            providers=[provider.model_copy(deep=True) for provider in providers],
        )

    def export_document(self) -> CatalogDocument:
        """Build a document from the stored providers.

        Raises:
            StorageError: If the store cannot be read.
        """
        return self.build_document(self.store.load_all())

    @staticmethod
    def serialize(document: CatalogDocument, passphrase: Optional[str] = None) -> bytes:
        """Encode a document as UTF-8 JSON, encrypted when a passphrase is given."""
        payload = document.to_json().encode("utf-8")
        if passphrase:
            return encrypt_with_passphrase(payload, passphrase)
        return payload

    async def export_to_sink(self, sink: FileSink, passphrase: Optional[str] = None) -> ExportResult:
        """Export the stored catalog to ``sink``.

        Returns:
            ExportResult; ``cancelled`` is set when the sink declined the write.
        """
        try:
            document = self.export_document()
        except OSError as e:
            logger.error(f"Export failed while loading providers: {e}")
            return ExportResult(success=False, message=f"Failed to load providers: {e}")

        payload = self.serialize(document, passphrase)
        try:
            written = await sink.write(payload)
        except OSError as e:
            logger.error(f"Export failed while writing file: {e}")
            return ExportResult(success=False, message=f"Failed to write export file: {e}")

        if not written:
            return ExportResult(success=False, message="Export cancelled", cancelled=True)

        logger.info(f"Exported {len(document.providers)} providers")
        return ExportResult(
            success=True,
            message=f"Exported {len(document.providers)} providers",
            providers=len(document.providers),
        )
