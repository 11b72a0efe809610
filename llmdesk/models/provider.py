"""Provider database model."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from llmdesk.database.database import Base


class ProviderRecord(Base):
    """Stored LLM provider. API keys are kept encrypted in one column."""

    __tablename__ = "providers"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    is_custom = Column(Boolean, nullable=False, default=False)
    api_keys_encrypted = Column(Text, nullable=True)
    endpoints = Column(JSON, nullable=False, default=dict)
    limits = Column(JSON, nullable=False, default=list)
    features = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    models = relationship(
        "ModelRecord",
        back_populates="provider",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ModelRecord.position",
    )
