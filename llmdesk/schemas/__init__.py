"""Pydantic schemas for the catalog wire format and operation results."""

from llmdesk.schemas.catalog import (
    CatalogDocument,
    ContextWindow,
    Credentials,
    Endpoints,
    Metadata,
    Model,
    ModelFeatures,
    Pricing,
    Provider,
    ProviderFeatures,
    RateLimit,
    format_model_name,
)
from llmdesk.schemas.results import (
    ExportResult,
    ImportedCounts,
    ImportMode,
    ImportResult,
    ValidationResult,
)

__all__ = [
    "CatalogDocument",
    "ContextWindow",
    "Credentials",
    "Endpoints",
    "Metadata",
    "Model",
    "ModelFeatures",
    "Pricing",
    "Provider",
    "ProviderFeatures",
    "RateLimit",
    "format_model_name",
    "ExportResult",
    "ImportedCounts",
    "ImportMode",
    "ImportResult",
    "ValidationResult",
]
