"""Domain models for the Expense Tracker API."""

from .constants import (
    ALLOWED_METHODS,
    IDEMPOTENCY_KEY_HEADER,
    MAX_DESCRIPTION_LENGTH,
    ExpenseSort,
)  # re-export
from .expense import (
    Expense,
    ExpenseIn,
    ExpenseOut,
    NormalizedExpense,
    ValidationFailure,
    ValidationResult,
)

__all__ = [
    "ALLOWED_METHODS",
    "IDEMPOTENCY_KEY_HEADER",
    "MAX_DESCRIPTION_LENGTH",
    "ExpenseSort",
    "Expense",
    "ExpenseIn",
    "ExpenseOut",
    "NormalizedExpense",
    "ValidationFailure",
    "ValidationResult",
]
