from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from imagegen.api.deps import get_current_user
from imagegen.db.session import get_db
from imagegen.models.user import User
from imagegen.schemas.credits import BalanceOut, LedgerEntryOut, LedgerPageOut
from imagegen.schemas.generation import Pagination
from imagegen.services.ledger.service import LedgerService


router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceOut)
def get_balance(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> BalanceOut:
    return BalanceOut(balance=LedgerService(db).current_balance(user.id))


@router.get("/transactions", response_model=LedgerPageOut)
def list_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LedgerPageOut:
    entries, total = LedgerService(db).history(user.id, limit=limit, offset=offset)
    return LedgerPageOut(
        data=[
            LedgerEntryOut(
                transaction_id=e.id,
                request_id=e.request_id,
                transaction_type=e.transaction_type,
                amount=e.amount,
                balance_after=e.balance_after,
                notes=e.notes,
                transaction_time=e.transaction_time,
            )
            for e in entries
        ],
        pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + len(entries) < total),
    )
