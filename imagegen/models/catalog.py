"""
Model catalog: providers (Google, OpenAI, ...) and the generation models they serve.
Read-only for the request lifecycle; cost_per_request is the pricing input.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from imagegen.db.base import Base


class AiProvider(Base):
    __tablename__ = "api_providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    website_url = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    models = relationship("AiModel", back_populates="provider")


class AiModel(Base):
    __tablename__ = "ai_models"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(Integer, ForeignKey("api_providers.id"), nullable=False, index=True)
    model_name = Column(String(100), nullable=False)  # "DALL-E 3"
    api_identifier = Column(String(100), unique=True, nullable=False, index=True)  # "dall-e-3"
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    cost_per_request = Column(Numeric(10, 4), nullable=True, default=0)  # credits per output
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    provider = relationship("AiProvider", back_populates="models")
