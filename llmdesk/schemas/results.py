"""Result types returned by validation, import and export."""

from enum import Enum
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field

from llmdesk.schemas.catalog import CatalogDocument


class ImportMode(str, Enum):
    """How an imported document is combined with the stored catalog."""

    REPLACE = "replace"
    MERGE = "merge"


class ValidationResult(BaseModel):
    """Outcome of checking a raw document before import."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    document: Optional[CatalogDocument] = None


class ImportedCounts(BaseModel):
    """Number of providers and models added or updated by an import."""

    providers: int = 0
    models: int = 0


class ImportResult(BaseModel):
    """Result of an import operation.

    A cancelled import is reported with ``success=False`` and the
    ``CANCELLED_MESSAGE`` sentinel; callers should not present it as a failure.
    """

    CANCELLED_MESSAGE: ClassVar[str] = "Import cancelled"

    success: bool
    message: str
    warnings: List[str] = Field(default_factory=list)
    imported: ImportedCounts = Field(default_factory=ImportedCounts)

    @property
    def cancelled(self) -> bool:
        return not self.success and self.message == self.CANCELLED_MESSAGE

    @classmethod
    def cancellation(cls) -> "ImportResult":
        return cls(success=False, message=cls.CANCELLED_MESSAGE)

    @classmethod
    def failure(cls, message: str, warnings: Optional[List[str]] = None) -> "ImportResult":
        return cls(success=False, message=message, warnings=list(warnings or []))


class ExportResult(BaseModel):
    """Result of writing an export to a file sink."""

    success: bool
    message: str
    cancelled: bool = False
    providers: int = 0
