import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from imagegen.api.deps import get_idempotency_store
from imagegen.core.config import settings
from imagegen.db.session import get_db
from imagegen.services.idempotency import IdempotencyStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
) -> dict:
    """503 until both the database and the idempotency store answer."""
    try:
        db.execute(text("SELECT 1"))
        idempotency.ping()
    except Exception as exc:
        logger.exception("readiness_check_failed", extra={"error": type(exc).__name__})
        response.status_code = 503
        body = {"status": "not_ready"}
        if settings.is_development:
            body["error"] = str(exc)
        return body
    return {"status": "ready"}
