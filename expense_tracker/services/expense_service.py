"""Expense submission and listing.

POST flow: key check -> validation -> ledger lookup -> insert -> ledger record.
The ledger lookup before insert is only a shortcut; the UNIQUE constraint on
the expense row decides the winner when identical keys race, and the loser
replays the winner's expense.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from expense_tracker.core.errors import (
    ConstraintViolation,
    KeyConflict,
    PersistenceFailure,
)
from expense_tracker.db.dal import Database
from expense_tracker.models.constants import ExpenseSort
from expense_tracker.models.expense import Expense, ExpenseIn, ValidationFailure
from expense_tracker.services.expense_validation import validate_expense
from expense_tracker.services.idempotency import (
    IdempotencyLedger,
    require_idempotency_key,
)

logger = logging.getLogger("expense_tracker.expenses")


@dataclass(frozen=True)
class SubmissionResult:
    expense: Expense
    created: bool


class ExpenseService:
    def __init__(self, db: Database, ledger: Optional[IdempotencyLedger] = None):
        self.db = db
        self.ledger = ledger or IdempotencyLedger(db)

    def submit(
        self, idempotency_key: Optional[str], payload: ExpenseIn
    ) -> SubmissionResult:
        key = require_idempotency_key(idempotency_key)

        result = validate_expense(payload)
        if isinstance(result, ValidationFailure):
            raise result.error

        existing = self.ledger.lookup(key)
        if existing is not None:
            logger.info(
                "replaying expense for repeated idempotency key",
                extra={"expense_id": existing.id},
            )
            return SubmissionResult(expense=existing, created=False)

        try:
            expense = self.db.insert_expense(result, key)
        except ConstraintViolation:
            return SubmissionResult(expense=self._winner_of_race(key), created=False)

        try:
            self.ledger.record(key, expense.id)
        except (KeyConflict, PersistenceFailure):
            # expense row already carries the key; lookup still finds it
            logger.warning(
                "failed to record idempotency key",
                exc_info=True,
                extra={"expense_id": expense.id},
            )

        logger.info("created expense", extra={"expense_id": expense.id})
        return SubmissionResult(expense=expense, created=True)

    def _winner_of_race(self, key: str) -> Expense:
        winner = self.ledger.lookup(key)
        if winner is None:
            logger.error(
                "unique constraint fired but no expense is readable for the key",
                extra={"idempotency_key": key},
            )
            raise PersistenceFailure("expense missing after idempotency conflict")
        logger.info(
            "lost idempotency race; replaying winner",
            extra={"expense_id": winner.id},
        )
        return winner

    def list_expenses(
        self, category: Optional[str] = None, sort: Optional[str] = None
    ) -> List[Expense]:
        return self.db.list_expenses(category=category, sort=ExpenseSort.parse(sort))
