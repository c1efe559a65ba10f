from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from imagegen.db.base import Base


class RequestStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED)


class GenerationRequest(Base):
    __tablename__ = "generation_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    model_id = Column(Integer, ForeignKey("ai_models.id"), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    negative_prompt = Column(Text, nullable=True)
    aspect_ratio = Column(String(10), nullable=True)  # 16:9, 1:1, 9:16
    style_preset = Column(String(100), nullable=True)
    seed = Column(BigInteger, nullable=True)
    num_outputs = Column(Integer, nullable=False, default=1)
    quality = Column(String(20), nullable=True)  # standard, hd
    status = Column(String(16), nullable=False, default=RequestStatus.PENDING.value, index=True)
    api_specific_parameters = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    error_message = Column(Text, nullable=True)
    # Fixed at creation; the refund amount on cancel/failure.
    credits_charged = Column(Integer, nullable=False, default=0)
    requested_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True
    )
    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    model = relationship("AiModel")
    images = relationship(
        "GeneratedImage",
        back_populates="request",
        order_by="GeneratedImage.generated_at",
        cascade="all, delete-orphan",
    )
    credit_transactions = relationship(
        "LedgerEntry",
        order_by="LedgerEntry.sequence",
        viewonly=True,
    )

    @property
    def status_enum(self) -> RequestStatus:
        return RequestStatus(self.status)
