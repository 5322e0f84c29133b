"""Money helpers.

Amounts are held as integer minor units (cents, paise) everywhere past the
request boundary. Conversion rounds half-up, i.e. half away from zero for the
positive amounts this service accepts: ``"0.005"`` becomes 1 minor unit.
"""

from __future__ import annotations
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP
from typing import Union

from expense_tracker.core.errors import InvalidAmount
from expense_tracker.models.constants import MAX_AMOUNT_MINOR, MINOR_UNITS_PER_MAJOR


def _to_decimal(value: Union[str, int, float]) -> Decimal:
    # bool is an int subclass; True must not become 0.01
    if isinstance(value, bool):
        raise InvalidAmount()
    if isinstance(value, float):
        # shortest repr, so 0.1 stays 0.1 rather than its binary expansion
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
    if not isinstance(value, (str, int)):
        raise InvalidAmount()
    try:
        parsed = Decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidAmount() from None
    if not parsed.is_finite():
        raise InvalidAmount()
    return parsed


def to_minor_units(value: Union[str, int, float]) -> int:
    """Convert a positive decimal amount to integer minor units.

    Raises InvalidAmount for anything unparseable, non-finite, non-positive,
    too small to be worth one minor unit, or too large to store.
    """
    amount = _to_decimal(value)
    if amount <= 0:
        raise InvalidAmount()
    try:
        minor = (amount * MINOR_UNITS_PER_MAJOR).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    except DecimalException:  # Overflow on huge exponents, InvalidOperation on precision
        raise InvalidAmount() from None
    if minor <= 0 or minor > MAX_AMOUNT_MINOR:
        raise InvalidAmount()
    return int(minor)


def to_display_string(minor: int) -> str:
    """Render minor units as a two-decimal string, e.g. 10550 -> "105.50"."""
    sign = "-" if minor < 0 else ""
    whole, frac = divmod(abs(minor), MINOR_UNITS_PER_MAJOR)
    return f"{sign}{whole}.{frac:02d}"
