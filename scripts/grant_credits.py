#!/usr/bin/env python3
"""
Credit a user's ledger (purchase or bonus) and print the resulting balance.
Run from the project root: python -m scripts.grant_credits <user_id> <amount> [--type bonus] [--notes "..."]
"""
import argparse
import sys

from imagegen.core.errors import ServiceError
from imagegen.db.session import SessionLocal
from imagegen.models.credit_ledger import TransactionType
from imagegen.services.ledger.service import LedgerService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Append a purchase or bonus credit to a user's ledger.")
    parser.add_argument("user_id")
    parser.add_argument("amount", type=int)
    parser.add_argument(
        "--type",
        dest="transaction_type",
        choices=[TransactionType.PURCHASE.value, TransactionType.BONUS.value],
        default=TransactionType.PURCHASE.value,
    )
    parser.add_argument("--notes", default=None)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    db = SessionLocal()
    try:
        ledger = LedgerService(db)
        try:
            entry = ledger.grant(args.user_id, args.amount, TransactionType(args.transaction_type), notes=args.notes)
        except ServiceError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1
        report = ledger.verify_chain(args.user_id)
        print(f"{entry.transaction_type} +{entry.amount} -> balance {entry.balance_after}")
        print(f"Chain: {report.entries} entries, {'ok' if report.ok else 'BROKEN'}")
        for problem in report.problems:
            print(f"  {problem}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
