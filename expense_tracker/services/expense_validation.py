"""Domain-level expense validation.

``validate_expense`` turns a raw ``ExpenseIn`` into either a
``NormalizedExpense`` or a ``ValidationFailure``. Rules run in a fixed order
(amount, category, date, description) and the first failure wins, so the
same bad payload always yields the same message.

The function is pure: nothing is persisted and the decimal amount text is
dropped once converted to minor units.
"""

from __future__ import annotations
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Optional

from expense_tracker.core.errors import (
    DescriptionTooLong,
    ExpenseClientError,
    InvalidDate,
    InvalidDescription,
    MissingCategory,
)
from expense_tracker.models.constants import MAX_DESCRIPTION_LENGTH
from expense_tracker.models.expense import NormalizedExpense, ValidationFailure
from expense_tracker.services.money import to_minor_units

if TYPE_CHECKING:  # pragma: no cover
    from expense_tracker.models.expense import ExpenseIn, ValidationResult


def parse_expense_date(value: Any) -> date:
    """Parse an ISO-8601 date; a full ISO datetime is truncated to its date."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate()
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidDate() from None


def normalize_category(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MissingCategory()
    return value.strip()


def normalize_description(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidDescription()
    text = value.strip()
    if len(text) > MAX_DESCRIPTION_LENGTH:
        raise DescriptionTooLong()
    return text or None


def validate_expense(payload: "ExpenseIn") -> "ValidationResult":
    """Validate a raw expense payload; first failing rule wins."""
    field = "amount"
    try:
        amount_minor = to_minor_units(payload.amount)
        field = "category"
        category = normalize_category(payload.category)
        field = "date"
        expense_date = parse_expense_date(payload.date)
        field = "description"
        description = normalize_description(payload.description)
    except ExpenseClientError as exc:
        return ValidationFailure(field=field, error=exc)
    return NormalizedExpense(
        amount_minor=amount_minor,
        category=category,
        description=description,
        date=expense_date,
    )
