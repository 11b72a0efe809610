"""Exception types raised by the catalog services."""

from typing import List, Optional


class CatalogValidationError(ValueError):
    """Raised when a document or entity does not have the expected shape."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class StorageError(IOError):
    """Raised when the backing store cannot be read or written."""


class ProviderNotFoundError(LookupError):
    """Raised when a provider id is unknown."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"provider not found: {provider_id}")


class ModelNotFoundError(LookupError):
    """Raised when a model id is unknown within its provider."""

    def __init__(self, model_id: str, provider_id: Optional[str] = None):
        self.model_id = model_id
        self.provider_id = provider_id
        super().__init__(f"model not found: {model_id}")
