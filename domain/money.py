"""
Money helpers (pure).

All amounts are Decimal and carry full precision through every calculation.
Two-decimal rounding happens once, when a value is presented (screen, receipt
or wire payload).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any, *, name: str = "amount") -> Decimal:
    """
    Coerce a service or user value into a Decimal without float contamination.

    Floats go through ``str`` so 0.1 stays 0.1. ``None`` and blank strings are
    zero.
    """

    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got a boolean")
    if isinstance(value, str) and not value.strip():
        return ZERO
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be numeric, got {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return result


def parse_optional_amount(text: Optional[str], *, name: str = "amount") -> Optional[Decimal]:
    """Parse user-entered text; blank means unset."""

    if text is None or not str(text).strip():
        return None
    return to_decimal(text, name=name)


def round_money(value: Decimal) -> Decimal:
    """Round to the display unit (two decimals, half-up)."""

    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return str(round_money(value))


__all__ = [
    "TWO_PLACES",
    "ZERO",
    "format_money",
    "parse_optional_amount",
    "round_money",
    "to_decimal",
]
