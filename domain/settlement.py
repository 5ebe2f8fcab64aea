"""
Domain: Settlement of a cart (pure).

Order of operations, fixed for completed and saved bills alike:
1. subtotal = sum(unit_price * quantity) over all lines
2. tax on the subtotal only, when the branch has tax enabled
3. discount on the taxed subtotal, either percent or flat amount (never both)
4. total floored at zero
5. paid amount split into credit (still owed) or change (to return)

Intermediate values keep full Decimal precision; `rounded()` is the single
presentation-time rounding step.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .cart import CartLedger
from .errors import ValidationError
from .money import ZERO, round_money

HUNDRED = Decimal("100")


class DiscountMode(str, Enum):
    PERCENT = "percent"
    AMOUNT = "amount"


@dataclass(frozen=True, slots=True)
class TaxConfig:
    rate: Decimal = ZERO
    enabled: bool = False

    def __post_init__(self) -> None:
        if self.rate < 0:
            raise ValidationError("tax rate must be >= 0")


@dataclass(frozen=True, slots=True)
class Discount:
    mode: DiscountMode = DiscountMode.PERCENT
    value: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValidationError("discount must be >= 0")
        if self.mode is DiscountMode.PERCENT and self.value > HUNDRED:
            raise ValidationError("discount percent must be <= 100")


@dataclass(frozen=True, slots=True)
class Settlement:
    """Derived financial summary of a cart. Never persisted on its own."""

    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    paid_amount: Optional[Decimal]
    credit_amount: Decimal
    change_amount: Decimal

    @property
    def taxed_subtotal(self) -> Decimal:
        return self.subtotal + self.tax_amount

    @property
    def is_credit_sale(self) -> bool:
        return self.credit_amount > 0

    def rounded(self) -> "Settlement":
        return Settlement(
            subtotal=round_money(self.subtotal),
            tax_amount=round_money(self.tax_amount),
            discount_amount=round_money(self.discount_amount),
            total=round_money(self.total),
            paid_amount=round_money(self.paid_amount) if self.paid_amount is not None else None,
            credit_amount=round_money(self.credit_amount),
            change_amount=round_money(self.change_amount),
        )


def calculate_settlement(
    ledger: CartLedger,
    *,
    tax: TaxConfig = TaxConfig(),
    discount: Discount = Discount(),
    paid_amount: Optional[Decimal] = None,
) -> Settlement:
    """
    Compute the bill for a ledger. Referentially transparent.

    An unset paid amount counts as nothing paid for the credit/change split.

    Example:
        subtotal 100, tax 13% enabled, 10% discount, paid 100
        -> tax 13, discount 11.3, total 101.7, credit 1.7
    """

    if paid_amount is not None and paid_amount < 0:
        raise ValidationError("paid amount must be >= 0")

    subtotal = sum((line.amount for line in ledger), ZERO)
    tax_amount = subtotal * tax.rate / HUNDRED if tax.enabled else ZERO
    taxed_subtotal = subtotal + tax_amount

    if discount.mode is DiscountMode.PERCENT:
        discount_amount = taxed_subtotal * discount.value / HUNDRED
    else:
        discount_amount = discount.value

    total = max(ZERO, taxed_subtotal - discount_amount)

    paid = paid_amount if paid_amount is not None else ZERO
    credit_amount = max(ZERO, total - paid)
    change_amount = max(ZERO, paid - total)

    return Settlement(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total=total,
        paid_amount=paid_amount,
        credit_amount=credit_amount,
        change_amount=change_amount,
    )


__all__ = ["Discount", "DiscountMode", "Settlement", "TaxConfig", "calculate_settlement"]
