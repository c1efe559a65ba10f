from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from imagegen.core.errors import ValidationError
from imagegen.db.base import Base


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"


class GeneratedImage(Base):
    __tablename__ = "generated_images"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    request_id = Column(
        String, ForeignKey("generation_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Denormalized from the owning request; only set through for_request().
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1024), unique=True, nullable=False)
    thumbnail_url = Column(String(1024), nullable=True)
    storage_provider = Column(String(50), nullable=True)  # S3, GCS, LocalStorage
    storage_path = Column(String(1024), nullable=True)
    alt_text = Column(Text, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    format = Column(String(8), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    api_response_metadata = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    is_favorited = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    request = relationship("GenerationRequest", back_populates="images")

    @classmethod
    def for_request(cls, request, **fields) -> "GeneratedImage":
        """Build an image owned by the request's user. user_id in fields is ignored."""
        fields.pop("user_id", None)
        fmt = fields.get("format")
        if isinstance(fmt, ImageFormat):
            fields["format"] = fmt.value
        elif fmt is not None:
            try:
                fields["format"] = ImageFormat(str(fmt).lower()).value
            except ValueError:
                raise ValidationError(f"Unsupported image format: {fmt}") from None
        return cls(request_id=request.id, user_id=request.user_id, **fields)
