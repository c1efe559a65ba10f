"""
Credit ledger: append-only store, balance resolution and the atomic runner
that wraps every read-check-write sequence against it.

Balance is never stored on the user. It is the balance_after of the user's
chain tail; appends take a row lock on the user first and extend the chain
with sequence = tail.sequence + 1 under a unique constraint.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from imagegen.core.config import settings
from imagegen.core.errors import ServiceError, StoreConflict, StoreUnavailable, ValidationError
from imagegen.models.credit_ledger import LedgerEntry, TransactionType
from imagegen.models.user import User
from imagegen.utils.metrics import ledger_entries_total, store_conflicts_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

_READ_TAIL = object()


def run_atomic(db: Session, operation: Callable[[], T], name: str, max_attempts: int | None = None) -> T:
    """
    Run operation as one transaction and commit it.

    StoreConflict rolls back and reruns the whole operation (re-read balance,
    re-check, re-write). Any other failure rolls back and propagates, so nothing
    is left half-written.
    """
    attempts = max_attempts or settings.ledger_max_retries
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except StoreConflict:
            db.rollback()
            store_conflicts_total.inc()
            logger.warning("ledger_store_conflict", extra={"reason": name, "attempt": attempt})
            if attempt == attempts:
                raise
        except ServiceError:
            db.rollback()
            raise
        except OperationalError as exc:
            db.rollback()
            logger.error("ledger_store_unavailable", extra={"reason": name, "error": str(exc.orig)})
            raise StoreUnavailable() from exc
        except Exception:
            db.rollback()
            raise
    raise StoreConflict()


class BalanceResolver:
    def __init__(self, db: Session):
        self.db = db

    def tail(self, user_id: str) -> LedgerEntry | None:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.sequence.desc())
            .first()
        )

    def current_balance(self, user_id: str) -> int:
        """Latest balance_after for the user, 0 if the user has no entries (or is unknown)."""
        last = self.tail(user_id)
        return last.balance_after if last else 0


@dataclass
class ChainReport:
    user_id: str
    entries: int = 0
    balance: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


class LedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.balances = BalanceResolver(db)

    def current_balance(self, user_id: str) -> int:
        return self.balances.current_balance(user_id)

    def lock_user(self, user_id: str) -> User | None:
        """Row-lock the user for the rest of the transaction (per-user mutual exclusion)."""
        return (
            self.db.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .one_or_none()
        )

    def append(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        request_id: str | None = None,
        notes: str | None = None,
        previous=_READ_TAIL,
    ) -> LedgerEntry:
        """
        Extend the user's chain by one entry. Caller owns the transaction and
        should hold the user lock from lock_user().

        previous is the tail the caller based its balance check on (None for an
        empty chain). The entry is chained onto exactly that tail, so if another
        writer got there first the insert collides and StoreConflict is raised.
        """
        last = self.balances.tail(user_id) if previous is _READ_TAIL else previous
        previous_balance = last.balance_after if last else 0
        balance_after = previous_balance + amount
        if balance_after < 0:
            raise ValidationError("Ledger entry would make the balance negative")
        entry = LedgerEntry(
            user_id=user_id,
            request_id=request_id,
            transaction_type=TransactionType(transaction_type).value,
            amount=amount,
            balance_after=balance_after,
            sequence=(last.sequence + 1) if last else 1,
            notes=notes,
        )
        self.db.add(entry)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise StoreConflict() from exc
        ledger_entries_total.labels(transaction_type=entry.transaction_type).inc()
        logger.info(
            "ledger_entry_appended",
            extra={
                "user_id": user_id,
                "generation_request_id": request_id,
                "transaction_type": entry.transaction_type,
                "amount": amount,
                "balance_after": balance_after,
            },
        )
        return entry

    def grant(
        self,
        user_id: str,
        amount: int,
        transaction_type: TransactionType = TransactionType.PURCHASE,
        notes: str | None = None,
    ) -> LedgerEntry:
        """Credit purchased or bonus credits and commit."""
        transaction_type = TransactionType(transaction_type)
        if amount <= 0:
            raise ValidationError("Granted amount must be positive")
        if transaction_type not in (TransactionType.PURCHASE, TransactionType.BONUS):
            raise ValidationError("Only purchase or bonus credits can be granted")

        def operation() -> LedgerEntry:
            if self.lock_user(user_id) is None:
                raise ValidationError(f"Unknown user {user_id}")
            return self.append(user_id, amount, transaction_type, notes=notes)

        entry = run_atomic(self.db, operation, "grant")
        self.db.refresh(entry)
        return entry

    def history(self, user_id: str, limit: int = 20, offset: int = 0) -> tuple[list[LedgerEntry], int]:
        q = self.db.query(LedgerEntry).filter(LedgerEntry.user_id == user_id)
        total = q.count()
        entries = q.order_by(LedgerEntry.sequence.desc()).offset(offset).limit(limit).all()
        return entries, total

    def verify_chain(self, user_id: str) -> ChainReport:
        """Walk the chain oldest first and check sequence and running balance."""
        report = ChainReport(user_id=user_id)
        running = 0
        entries = (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.sequence.asc())
            .all()
        )
        for expected_sequence, entry in enumerate(entries, start=1):
            running += entry.amount
            if entry.sequence != expected_sequence:
                report.problems.append(f"entry {entry.id}: sequence {entry.sequence}, expected {expected_sequence}")
            if entry.balance_after != running:
                report.problems.append(
                    f"entry {entry.id}: balance_after {entry.balance_after}, running sum {running}"
                )
            if entry.balance_after < 0:
                report.problems.append(f"entry {entry.id}: negative balance {entry.balance_after}")
        report.entries = len(entries)
        report.balance = entries[-1].balance_after if entries else 0
        return report
