"""Shared dependencies for the API routers."""

from fastapi import Depends

from llmdesk.database.database import SessionLocal
from llmdesk.services.catalog_state import CatalogState
from llmdesk.services.encryption_service import EncryptionService
from llmdesk.services.export_service import ExportService
from llmdesk.services.import_service import ImportService
from llmdesk.services.provider_service import ProviderService
from llmdesk.services.storage_service import ProviderStore, SqlProviderStore

# Canonical provider collection for this process; shared by CRUD and import.
catalog_state = CatalogState()


def get_store() -> ProviderStore:
    """Get the provider store backed by the application database."""
    return SqlProviderStore(SessionLocal, EncryptionService())


def get_catalog_state() -> CatalogState:
    """Get the process-wide catalog state."""
    return catalog_state


def get_provider_service(
    store: ProviderStore = Depends(get_store),
    state: CatalogState = Depends(get_catalog_state),
) -> ProviderService:
    """Get provider service instance."""
    return ProviderService(store, state)


def get_import_service(
    store: ProviderStore = Depends(get_store),
    state: CatalogState = Depends(get_catalog_state),
) -> ImportService:
    """Get import service instance."""
    return ImportService(store, state)


def get_export_service(store: ProviderStore = Depends(get_store)) -> ExportService:
    """Get export service instance."""
    return ExportService(store)
