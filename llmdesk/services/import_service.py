"""Import of backup documents into the provider catalog."""

import json
import logging
from typing import Any, List, Optional, Union

from llmdesk.schemas.results import ImportedCounts, ImportMode, ImportResult
from llmdesk.services.catalog_state import CatalogState
from llmdesk.services.encryption_service import decrypt_with_passphrase
from llmdesk.services.file_source import FileSource
from llmdesk.services.provider_reconciler import ProviderReconciler
from llmdesk.services.storage_service import ProviderStore
from llmdesk.services.validation_service import ValidationService

logger = logging.getLogger(__name__)


class ImportService:
    """Validates, reconciles and persists an imported document."""

    def __init__(
        self,
        store: ProviderStore,
        state: Optional[CatalogState] = None,
        validation_service: Optional[ValidationService] = None,
        reconciler: Optional[ProviderReconciler] = None,
    ):
        """Initialize import service.

        Args:
            store: Storage collaborator; must provide an atomic ``replace_all``.
            state: Canonical in-memory collection to swap after a successful import.
            validation_service: Document validator.
            reconciler: Provider reconciler.
        """
        self.store = store
        self.state = state
        self.validation_service = validation_service or ValidationService()
        self.reconciler = reconciler or ProviderReconciler()

    async def import_from_source(
        self,
        source: FileSource,
        mode: Union[ImportMode, str],
        passphrase: Optional[str] = None,
    ) -> ImportResult:
        """Read a document from ``source`` and import it.

        A source that yields no bytes means the user cancelled; the result is
        ``ImportResult.cancellation()`` and nothing is touched.
        """
        try:
            raw = await source.read()
        except OSError as e:
            logger.error(f"Failed to read import file: {e}")
            return ImportResult.failure(f"Failed to read import file: {e}")

        if raw is None:
            logger.info("Import cancelled by user")
            return ImportResult.cancellation()

        return self.import_document(raw, mode, passphrase)

    def import_document(
        self,
        raw: Union[bytes, str, dict],
        mode: Union[ImportMode, str],
        passphrase: Optional[str] = None,
    ) -> ImportResult:
        """Import a raw document.

        Steps: decode, validate, load the current catalog (merge mode only),
        reconcile, persist with ``replace_all``, swap the in-memory state. A
        failure before persistence leaves storage and state unchanged; a
        failed write leaves them unchanged too.

        Args:
            raw: JSON bytes or text (optionally passphrase-encrypted bytes),
                or an already parsed document.
            mode: ``replace`` or ``merge``.
            passphrase: Passphrase for an encrypted backup.

        Returns:
            ImportResult describing the outcome; this method does not raise
            for invalid input or storage failures.
        """
        try:
            mode = ImportMode(mode)
        except ValueError:
            return ImportResult.failure(f"Invalid import mode: {mode}")

        try:
            data = self._decode(raw, passphrase)
        except ValueError as e:
            logger.warning(f"Failed to parse import file: {e}")
            return ImportResult.failure(f"Failed to parse import file: {e}")

        validation = self.validation_service.validate_document(data)
        if not validation.valid:
            return ImportResult.failure("; ".join(validation.errors), validation.warnings)

        warnings: List[str] = list(validation.warnings)
        existing = []
        if mode is ImportMode.MERGE:
            try:
                existing = self.store.load_all()
            except OSError as e:
                logger.error(f"Could not load existing providers before merge: {e}")
                warnings.append(f"Could not load existing providers, merging into an empty catalog: {e}")

        result = self.reconciler.reconcile(existing, validation.document.providers, mode)
        warnings.extend(result.warnings)

        try:
            self.store.replace_all(result.providers)
        except OSError as e:
            logger.error(f"Failed to save imported data: {e}")
            return ImportResult.failure(f"Failed to save imported data: {e}", warnings)

        if self.state is not None:
            self.state.swap(result.providers)

        counts = result.counts
        message = f"Imported {counts.providers} providers and {counts.models} models"
        if mode is ImportMode.MERGE:
            message += f" ({counts.providers_added} providers added, {counts.providers_updated} updated)"
        logger.info(f"{message} using {mode.value} mode with {len(warnings)} warning(s)")

        return ImportResult(
            success=True,
            message=message,
            warnings=warnings,
            imported=ImportedCounts(providers=counts.providers, models=counts.models),
        )

    @staticmethod
    def _decode(raw: Union[bytes, str, dict], passphrase: Optional[str]) -> Any:
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        if passphrase:
            raw = decrypt_with_passphrase(raw, passphrase)
        return json.loads(raw.decode("utf-8-sig"))
