from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from expense_tracker.core.errors import ExpenseClientError


class ExpenseIn(BaseModel):
    """Raw POST body.

    The annotations document the wire shape. A value of the wrong JSON type
    is kept as sent so that ``validate_expense`` reports it in rule order
    with its own 400 message.
    """

    model_config = ConfigDict(extra="ignore")

    amount: Optional[Union[StrictStr, StrictInt, StrictFloat]] = None
    category: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    date: Optional[StrictStr] = None

    @field_validator("amount", "category", "description", "date", mode="wrap")
    @classmethod
    def defer_type_errors(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return value


@dataclass(frozen=True)
class NormalizedExpense:
    amount_minor: int
    category: str
    description: Optional[str]
    date: dt.date


@dataclass(frozen=True)
class ValidationFailure:
    field: str
    error: ExpenseClientError

    @property
    def reason(self) -> str:
        return self.error.detail


ValidationResult = Union[NormalizedExpense, ValidationFailure]


@dataclass(frozen=True)
class Expense:
    """A persisted expense as read back from the store."""

    id: str
    amount_minor: int
    category: str
    description: Optional[str]
    date: dt.date
    created_at: dt.datetime

    @classmethod
    def from_row(cls, row: dict) -> "Expense":
        return cls(
            id=row["id"],
            amount_minor=int(row["amount_minor"]),
            category=row["category"],
            description=row.get("description"),
            date=dt.date.fromisoformat(row["date"]),
            created_at=dt.datetime.fromisoformat(
                row["created_at"].replace("Z", "+00:00")
            ),
        )


class ExpenseOut(BaseModel):
    id: str
    amount: str
    category: str
    description: Optional[str] = None
    date: dt.date
    created_at: dt.datetime
