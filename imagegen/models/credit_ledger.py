"""
Append-only credit ledger. One row per balance change; the latest row's
balance_after is the user's balance. Rows are never updated or deleted.
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from imagegen.db.base import Base


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    CONSUMPTION = "consumption"
    REFUND = "refund"
    BONUS = "bonus"


class LedgerEntry(Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (
        # Two writers extending the same tail collide here instead of forking the chain.
        UniqueConstraint("user_id", "sequence", name="uq_credit_ledger_user_sequence"),
        CheckConstraint("balance_after >= 0", name="ck_credit_ledger_balance_non_negative"),
        CheckConstraint("sequence >= 1", name="ck_credit_ledger_sequence_positive"),
        Index("ix_credit_ledger_user_time", "user_id", "transaction_time"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(
        String, ForeignKey("generation_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    transaction_type = Column(String(16), nullable=False)
    amount = Column(Integer, nullable=False)  # negative = debit, positive = credit
    balance_after = Column(Integer, nullable=False)
    sequence = Column(Integer, nullable=False)  # 1-based position in the user's chain
    notes = Column(Text, nullable=True)
    transaction_time = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
