"""Database models package."""

from llmdesk.models.provider import ProviderRecord
from llmdesk.models.model import ModelRecord

__all__ = [
    "ProviderRecord",
    "ModelRecord",
]
