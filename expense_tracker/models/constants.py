"""Domain constants and enumerations for validation."""

from enum import Enum

MAX_DESCRIPTION_LENGTH = 500
MINOR_UNITS_PER_MAJOR = 100
# amount_minor is stored in a signed 64-bit INTEGER column
MAX_AMOUNT_MINOR = 2**63 - 1

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
ALLOWED_METHODS = ("GET", "POST")


class ExpenseSort(str, Enum):
    CREATED_DESC = "created_desc"
    DATE_DESC = "date_desc"

    @classmethod
    def parse(cls, value: str | None) -> "ExpenseSort":
        """Map a query-string value to a sort, defaulting to newest added first."""
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.CREATED_DESC
