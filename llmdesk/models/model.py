"""Model database model."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, JSON
from sqlalchemy.orm import relationship
from llmdesk.database.database import Base


class ModelRecord(Base):
    """Stored LLM model, owned by a provider."""

    __tablename__ = "models"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(String, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    model_id = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    parameters = Column(String, nullable=True)
    pricing = Column(JSON, nullable=False, default=dict)
    context = Column(JSON, nullable=False, default=dict)
    modalities = Column(JSON, nullable=False, default=list)
    features = Column(JSON, nullable=False, default=dict)
    limits = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    provider = relationship("ProviderRecord", back_populates="models")

    # Constraints
    __table_args__ = (
        UniqueConstraint('provider_id', 'model_id', name='uq_provider_model_id'),
        Index('ix_models_provider_id', 'provider_id'),
    )
