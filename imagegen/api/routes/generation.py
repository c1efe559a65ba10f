"""
Image generation requests: submit, list, detail, cancel.
Paths are fixed by existing clients: /api/images/generate and /api/images/generation-requests.
"""
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from imagegen.api.deps import get_current_user, get_idempotency_store
from imagegen.core.errors import DuplicateSubmission
from imagegen.db.session import get_db
from imagegen.models.generation_request import GenerationRequest, RequestStatus
from imagegen.models.user import User
from imagegen.schemas.generation import (
    CancelOut,
    CreditTransactionOut,
    GenerateIn,
    GenerateOut,
    ImageOut,
    ImagePreview,
    ModelBrief,
    ModelDetail,
    Pagination,
    RequestDetail,
    RequestDetailOut,
    RequestListItem,
    RequestListOut,
)
from imagegen.services.generation.service import GenerationRequestService, PageParams, RequestFilters
from imagegen.services.idempotency import IdempotencyStore


router = APIRouter(prefix="/api/images", tags=["images"])

PREVIEW_COUNT = 2


def _to_list_item(req: GenerationRequest) -> RequestListItem:
    return RequestListItem(
        request_id=req.id,
        status=req.status,
        prompt=req.prompt,
        negative_prompt=req.negative_prompt,
        model=ModelBrief(id=req.model_id, name=req.model.model_name, provider=req.model.provider.name),
        created_at=req.requested_at,
        completed_at=req.completed_at,
        image_count=len(req.images),
        image_previews=[
            ImagePreview(id=img.id, thumbnail=img.thumbnail_url or img.image_url)
            for img in req.images[:PREVIEW_COUNT]
        ],
    )


def _to_detail(req: GenerationRequest) -> RequestDetail:
    return RequestDetail(
        request_id=req.id,
        status=req.status,
        prompt=req.prompt,
        negative_prompt=req.negative_prompt,
        aspect_ratio=req.aspect_ratio,
        style_preset=req.style_preset,
        seed=req.seed,
        num_outputs=req.num_outputs,
        quality=req.quality,
        model=ModelDetail(
            id=req.model_id,
            name=req.model.model_name,
            provider=req.model.provider.name,
            api_identifier=req.model.api_identifier,
        ),
        created_at=req.requested_at,
        processing_started_at=req.processing_started_at,
        completed_at=req.completed_at,
        credits_charged=req.credits_charged,
        error_message=req.error_message,
        images=[
            ImageOut(
                image_id=img.id,
                url=img.image_url,
                thumbnail=img.thumbnail_url,
                width=img.width,
                height=img.height,
                format=img.format,
                is_favorited=img.is_favorited,
            )
            for img in req.images
        ],
        credit_transactions=[
            CreditTransactionOut(
                amount=tx.amount,
                transaction_type=tx.transaction_type,
                transaction_time=tx.transaction_time,
            )
            for tx in req.credit_transactions
        ],
        api_specific_parameters=req.api_specific_parameters,
    )


@router.post("/generate", response_model=GenerateOut, status_code=status.HTTP_202_ACCEPTED)
def create_generation_request(
    payload: GenerateIn,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
) -> GenerateOut:
    key = f"generate:{user.id}:{idempotency_key}" if idempotency_key else None
    if key and not idempotency.check_and_set(key):
        raise DuplicateSubmission()
    try:
        request = GenerationRequestService(db).submit(user.id, payload)
    except Exception:
        # Nothing was committed; free the key for the retry.
        if key:
            idempotency.release(key)
        raise
    return GenerateOut(request_id=request.id)


@router.get("/generation-requests", response_model=RequestListOut)
def list_generation_requests(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: RequestStatus | None = Query(None, alias="status"),
    model_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestListOut:
    page = GenerationRequestService(db).list_requests(
        user.id,
        RequestFilters(status=status_filter, model_id=model_id),
        PageParams(limit=limit, offset=offset),
    )
    return RequestListOut(
        data=[_to_list_item(req) for req in page.items],
        pagination=Pagination(total=page.total, limit=page.limit, offset=page.offset, has_more=page.has_more),
    )


@router.get("/generation-requests/{request_id}", response_model=RequestDetailOut)
def get_generation_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestDetailOut:
    request = GenerationRequestService(db).get(user.id, request_id)
    return RequestDetailOut(data=_to_detail(request))


@router.post("/generation-requests/{request_id}/cancel", response_model=CancelOut)
def cancel_generation_request(
    request_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CancelOut:
    refunded = GenerationRequestService(db).cancel(user.id, request_id)
    return CancelOut(refunded_credits=refunded)
