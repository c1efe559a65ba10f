"""
Request dependencies. Authentication happens upstream; the gateway passes the
resolved user id in a header (settings.user_id_header).
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from imagegen.core.config import settings
from imagegen.core.errors import Unauthenticated
from imagegen.db.session import get_db
from imagegen.models.user import User
from imagegen.services.idempotency import IdempotencyStore


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = (request.headers.get(settings.user_id_header) or "").strip()
    if not user_id:
        raise Unauthenticated()
    user = db.query(User).filter(User.id == user_id).one_or_none()
    if user is None or not user.is_active:
        raise Unauthenticated()
    return user


_idempotency_store: IdempotencyStore | None = None


def get_idempotency_store() -> IdempotencyStore:
    global _idempotency_store
    if _idempotency_store is None:
        _idempotency_store = IdempotencyStore()
    return _idempotency_store
