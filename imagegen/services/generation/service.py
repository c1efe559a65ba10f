"""
Generation request lifecycle.

pending -> processing -> completed
pending | processing -> failed   (user cancel or worker failure, credits refunded)

Every transition that touches credits runs through run_atomic together with
its ledger entry, so a request and its debit/refund are never half-written.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session, joinedload, selectinload

from imagegen.core.config import settings
from imagegen.core.errors import InsufficientCredits, InvalidModel, InvalidState, NotFound, Unauthenticated
from imagegen.models.catalog import AiModel
from imagegen.models.credit_ledger import TransactionType
from imagegen.models.generated_image import GeneratedImage
from imagegen.models.generation_request import GenerationRequest, RequestStatus
from imagegen.schemas.generation import GenerateIn
from imagegen.services.catalog.service import CatalogService, required_credits
from imagegen.services.ledger.service import LedgerService, run_atomic
from imagegen.utils.metrics import (
    balance_rejected_total,
    generation_requests_cancelled_total,
    generation_requests_created_total,
    generation_requests_failed_total,
)

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


@dataclass(frozen=True)
class RequestFilters:
    status: RequestStatus | None = None
    model_id: int | None = None


@dataclass(frozen=True)
class PageParams:
    limit: int = 20
    offset: int = 0


@dataclass
class RequestPage:
    items: list[GenerationRequest]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class GenerationRequestService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.catalog = CatalogService(db)

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def submit(self, user_id: str, params: GenerateIn) -> GenerationRequest:
        """Price the request, check balance, create it pending and debit in one transaction."""
        model = self.catalog.get_active_model(params.model_id)
        if model is None:
            raise InvalidModel(params.model_id)
        model_id = model.id
        cost = required_credits(model.cost_per_request, params.num_outputs, settings.default_cost_per_output)

        def operation() -> GenerationRequest:
            if self.ledger.lock_user(user_id) is None:
                raise Unauthenticated("Unknown user")
            tail = self.ledger.balances.tail(user_id)
            balance = tail.balance_after if tail else 0
            if balance < cost:
                raise InsufficientCredits(required=cost, available=balance)
            request = GenerationRequest(
                user_id=user_id,
                model_id=model_id,
                prompt=params.prompt,
                negative_prompt=params.negative_prompt,
                aspect_ratio=params.aspect_ratio,
                style_preset=params.style_preset,
                seed=params.seed,
                num_outputs=params.num_outputs,
                quality=params.quality,
                api_specific_parameters=params.api_specific_parameters,
                status=RequestStatus.PENDING.value,
                credits_charged=cost,
            )
            self.db.add(request)
            self.db.flush()
            self.ledger.append(
                user_id,
                -cost,
                TransactionType.CONSUMPTION,
                request_id=request.id,
                notes=f"Credit deduction for generation request {request.id}",
                previous=tail,
            )
            return request

        try:
            request = run_atomic(self.db, operation, "submit")
        except InsufficientCredits as exc:
            balance_rejected_total.inc()
            logger.info(
                "generation_request_rejected",
                extra={
                    "user_id": user_id,
                    "model_id": params.model_id,
                    "required": exc.required,
                    "available": exc.available,
                },
            )
            raise
        generation_requests_created_total.labels(model_id=str(model_id)).inc()
        logger.info(
            "generation_request_submitted",
            extra={"user_id": user_id, "generation_request_id": request.id, "model_id": model_id, "amount": cost},
        )
        return request

    def cancel(self, user_id: str, request_id: str) -> int:
        """Fail a non-terminal request and refund what it was charged. Returns the refund."""

        def operation() -> int:
            request = self._lock_request(request_id, user_id)
            if request is None:
                raise NotFound()
            self._fail_and_refund(
                request, CANCELLED_MESSAGE, f"Credit refund for cancelled request {request.id}", action="cancel"
            )
            return request.credits_charged

        refunded = run_atomic(self.db, operation, "cancel")
        generation_requests_cancelled_total.inc()
        logger.info(
            "generation_request_cancelled",
            extra={"user_id": user_id, "generation_request_id": request_id, "amount": refunded},
        )
        return refunded

    def list_requests(
        self,
        user_id: str,
        filters: RequestFilters | None = None,
        page: PageParams | None = None,
    ) -> RequestPage:
        filters = filters or RequestFilters()
        page = page or PageParams()
        q = self.db.query(GenerationRequest).filter(GenerationRequest.user_id == user_id)
        if filters.status is not None:
            q = q.filter(GenerationRequest.status == RequestStatus(filters.status).value)
        if filters.model_id is not None:
            q = q.filter(GenerationRequest.model_id == filters.model_id)
        total = q.count()
        items = (
            q.options(
                joinedload(GenerationRequest.model).joinedload(AiModel.provider),
                selectinload(GenerationRequest.images),
            )
            .order_by(GenerationRequest.requested_at.desc(), GenerationRequest.id.desc())
            .offset(page.offset)
            .limit(page.limit)
            .all()
        )
        return RequestPage(items=items, total=total, limit=page.limit, offset=page.offset)

    def get(self, user_id: str, request_id: str) -> GenerationRequest:
        """Request owned by user_id. Someone else's request is NotFound, not forbidden."""
        request = (
            self.db.query(GenerationRequest)
            .options(
                joinedload(GenerationRequest.model).joinedload(AiModel.provider),
                selectinload(GenerationRequest.images),
                selectinload(GenerationRequest.credit_transactions),
            )
            .filter(GenerationRequest.id == request_id, GenerationRequest.user_id == user_id)
            .one_or_none()
        )
        if request is None:
            raise NotFound()
        return request

    # ------------------------------------------------------------------
    # Worker transitions
    # ------------------------------------------------------------------

    def mark_processing(self, request_id: str) -> GenerationRequest:
        def operation() -> GenerationRequest:
            request = self._require(request_id)
            if request.status_enum is not RequestStatus.PENDING:
                raise InvalidState(f"Cannot start request with status: {request.status}", request.status)
            request.status = RequestStatus.PROCESSING.value
            request.processing_started_at = datetime.now(timezone.utc)
            self.db.flush()
            return request

        request = run_atomic(self.db, operation, "mark_processing")
        logger.info("generation_request_processing", extra={"generation_request_id": request_id})
        return request

    def mark_completed(self, request_id: str, images: Iterable[dict[str, Any]]) -> GenerationRequest:
        """Complete a processing request and record its images under the request's user."""
        images = list(images)

        def operation() -> GenerationRequest:
            request = self._require(request_id)
            if request.status_enum is not RequestStatus.PROCESSING:
                raise InvalidState(f"Cannot complete request with status: {request.status}", request.status)
            for image in images:
                self.db.add(GeneratedImage.for_request(request, **image))
            request.status = RequestStatus.COMPLETED.value
            request.completed_at = datetime.now(timezone.utc)
            self.db.flush()
            return request

        request = run_atomic(self.db, operation, "mark_completed")
        logger.info(
            "generation_request_completed",
            extra={"generation_request_id": request_id, "user_id": request.user_id},
        )
        return request

    def mark_failed(self, request_id: str, error_message: str) -> int:
        """Worker-side failure. Refunds like a cancel. Returns the refund."""

        def operation() -> int:
            request = self._require(request_id)
            self._fail_and_refund(
                request, error_message, f"Credit refund for failed request {request.id}", action="fail"
            )
            return request.credits_charged

        refunded = run_atomic(self.db, operation, "mark_failed")
        generation_requests_failed_total.inc()
        logger.warning(
            "generation_request_failed",
            extra={"generation_request_id": request_id, "amount": refunded, "error": error_message},
        )
        return refunded

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_request(self, request_id: str, user_id: str | None = None) -> GenerationRequest | None:
        q = self.db.query(GenerationRequest).filter(GenerationRequest.id == request_id)
        if user_id is not None:
            q = q.filter(GenerationRequest.user_id == user_id)
        return q.with_for_update().one_or_none()

    def _require(self, request_id: str) -> GenerationRequest:
        request = self._lock_request(request_id)
        if request is None:
            raise NotFound()
        return request

    def _fail_and_refund(
        self, request: GenerationRequest, error_message: str, notes: str, action: str
    ) -> None:
        if request.status_enum.is_terminal:
            raise InvalidState(f"Cannot {action} request with status: {request.status}", request.status)
        request.status = RequestStatus.FAILED.value
        request.error_message = error_message
        request.completed_at = datetime.now(timezone.utc)
        self.db.flush()
        if request.credits_charged > 0:
            self.ledger.lock_user(request.user_id)
            self.ledger.append(
                request.user_id,
                request.credits_charged,
                TransactionType.REFUND,
                request_id=request.id,
                notes=notes,
            )
