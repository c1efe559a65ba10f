from datetime import datetime

from pydantic import BaseModel

from imagegen.schemas.generation import Pagination


class BalanceOut(BaseModel):
    success: bool = True
    balance: int


class LedgerEntryOut(BaseModel):
    transaction_id: str
    request_id: str | None
    transaction_type: str
    amount: int
    balance_after: int
    notes: str | None
    transaction_time: datetime


class LedgerPageOut(BaseModel):
    success: bool = True
    data: list[LedgerEntryOut]
    pagination: Pagination
