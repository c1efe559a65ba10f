from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from imagegen.core.config import settings
from imagegen.models.generation_request import RequestStatus


class GenerateIn(BaseModel):
    """Body of POST /api/images/generate. Unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    model_id: int
    prompt: str = Field(min_length=1, max_length=1000)
    negative_prompt: str | None = None
    aspect_ratio: str | None = Field(default=None, max_length=10)
    num_outputs: int = Field(default=1, ge=1, le=settings.max_outputs_per_request)
    style_preset: str | None = Field(default=None, max_length=100)
    seed: int | None = None
    quality: str | None = Field(default=None, max_length=20)
    api_specific_parameters: dict[str, Any] | None = None


class GenerateOut(BaseModel):
    success: bool = True
    message: str = "Generation request accepted"
    request_id: str


class CancelOut(BaseModel):
    success: bool = True
    message: str = "Generation request cancelled successfully"
    refunded_credits: int


class ModelBrief(BaseModel):
    id: int
    name: str
    provider: str


class ModelDetail(ModelBrief):
    api_identifier: str


class ImagePreview(BaseModel):
    id: str
    thumbnail: str


class RequestListItem(BaseModel):
    request_id: str
    status: RequestStatus
    prompt: str
    negative_prompt: str | None
    model: ModelBrief
    created_at: datetime
    completed_at: datetime | None
    image_count: int
    image_previews: list[ImagePreview]


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class RequestListOut(BaseModel):
    success: bool = True
    data: list[RequestListItem]
    pagination: Pagination


class ImageOut(BaseModel):
    image_id: str
    url: str
    thumbnail: str | None
    width: int | None
    height: int | None
    format: str | None
    is_favorited: bool


class CreditTransactionOut(BaseModel):
    amount: int
    transaction_type: str
    transaction_time: datetime


class RequestDetail(BaseModel):
    request_id: str
    status: RequestStatus
    prompt: str
    negative_prompt: str | None
    aspect_ratio: str | None
    style_preset: str | None
    seed: int | None
    num_outputs: int
    quality: str | None
    model: ModelDetail
    created_at: datetime
    processing_started_at: datetime | None
    completed_at: datetime | None
    credits_charged: int
    error_message: str | None
    images: list[ImageOut]
    credit_transactions: list[CreditTransactionOut]
    api_specific_parameters: dict[str, Any] | None


class RequestDetailOut(BaseModel):
    success: bool = True
    data: RequestDetail
