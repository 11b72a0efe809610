"""Services package."""

from llmdesk.services.catalog_state import CatalogState
from llmdesk.services.encryption_service import EncryptionService
from llmdesk.services.export_service import ExportService
from llmdesk.services.import_service import ImportService
from llmdesk.services.model_reconciler import ModelReconciler
from llmdesk.services.provider_reconciler import ProviderReconciler
from llmdesk.services.provider_service import ProviderService
from llmdesk.services.storage_service import InMemoryProviderStore, SqlProviderStore
from llmdesk.services.validation_service import ValidationService

__all__ = [
    "CatalogState",
    "EncryptionService",
    "ExportService",
    "ImportService",
    "ModelReconciler",
    "ProviderReconciler",
    "ProviderService",
    "InMemoryProviderStore",
    "SqlProviderStore",
    "ValidationService",
]
