"""
Domain: Buyer attached to a bill.

A buyer is either a registered patient (has an external_id from the patient
service) or a walk-in customer typed in at the counter.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional

from .errors import ValidationError
from .money import ZERO

WALK_IN_NAME = "Walk-in Customer"


@dataclass(frozen=True, slots=True)
class BuyerInfo:
    """
    Buyer details as entered or selected on the billing screen.

    `discount_percent` is the buyer's percentage discount, applied when the
    bill's discount mode is percent.
    """

    name: str = ""
    phone: str = ""
    external_id: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None  # male, female, other
    discount_percent: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.discount_percent < 0 or self.discount_percent > 100:
            raise ValidationError("discount_percent must be between 0 and 100")

    @property
    def is_walk_in(self) -> bool:
        return not self.external_id

    @property
    def display_name(self) -> str:
        return self.name.strip() or WALK_IN_NAME

    def can_take_credit(self) -> bool:
        """Credit is only extended to a named buyer who can be reached."""
        return bool(self.name.strip()) and bool(self.phone.strip())

    def with_discount(self, percent: Decimal) -> "BuyerInfo":
        return replace(self, discount_percent=percent)


__all__ = ["BuyerInfo", "WALK_IN_NAME"]
