"""Idempotency ledger: client key -> the expense that key produced.

The ledger table is a fast path. The authority is the UNIQUE
``idempotency_key`` column on ``expenses``: two requests racing with the same
key can both miss ``lookup`` but only one insert survives, and the loser
falls back to ``lookup`` again. ``lookup`` therefore also consults the
expense row itself, so a lost ``record`` write never opens the door to a
duplicate.
"""

from __future__ import annotations

import logging
from typing import Optional

from expense_tracker.core.errors import MissingIdempotencyKey
from expense_tracker.db.dal import Database
from expense_tracker.models.expense import Expense

logger = logging.getLogger("expense_tracker.idempotency")


def require_idempotency_key(value: Optional[str]) -> str:
    """Return the stripped header value or raise MissingIdempotencyKey."""
    if value is None or not value.strip():
        raise MissingIdempotencyKey()
    return value.strip()


class IdempotencyLedger:
    def __init__(self, db: Database):
        self.db = db

    def lookup(self, key: str) -> Optional[Expense]:
        record = self.db.get_idempotency_record(key)
        if record:
            expense = self.db.get_expense(record["expense_id"])
            if expense is not None:
                return expense
            logger.error(
                "idempotency record points at a missing expense",
                extra={"idempotency_key": key, "expense_id": record["expense_id"]},
            )
        return self.db.get_expense_by_idempotency_key(key)

    def record(self, key: str, expense_id: str) -> None:
        """Map key -> expense_id. Raises KeyConflict if the key is already mapped."""
        self.db.insert_idempotency_record(key, expense_id)
