"""
Tests for `domain/settlement.py`.

Covers:
- subtotal -> tax -> discount -> total -> credit/change ordering.
- Percent and flat discounts are mutually exclusive.
- total == max(0, subtotal + tax - discount) and credit + paid >= total.
- Rounding happens once, at presentation.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import grant
from domain.cart import CartLedger
from domain.errors import ValidationError
from domain.settlement import Discount, DiscountMode, TaxConfig, calculate_settlement

TAX_13 = TaxConfig(rate=Decimal("13"), enabled=True)


def _ledger(*lines) -> CartLedger:
    ledger = CartLedger.empty()
    for product_id, price, qty in lines:
        ledger = ledger.add_allocation(product_id, [grant(f"{product_id}-{price}", qty, price)])
    return ledger


def test_subtotal_sums_price_tiers() -> None:
    ledger = _ledger(("amox", "10", 3), ("amox", "12", 2))

    assert calculate_settlement(ledger).subtotal == Decimal("54")


def test_tax_then_percent_discount() -> None:
    ledger = _ledger(("amox", "100", 1))

    s = calculate_settlement(ledger, tax=TAX_13, discount=Discount(DiscountMode.PERCENT, Decimal("10")))

    assert s.tax_amount == Decimal("13")
    assert s.taxed_subtotal == Decimal("113")
    assert s.discount_amount == Decimal("11.3")
    assert s.total == Decimal("101.7")


def test_partial_payment_leaves_credit() -> None:
    ledger = _ledger(("amox", "100", 1))

    s = calculate_settlement(
        ledger,
        tax=TAX_13,
        discount=Discount(DiscountMode.PERCENT, Decimal("10")),
        paid_amount=Decimal("100"),
    )

    assert s.credit_amount == Decimal("1.7")
    assert s.change_amount == 0
    assert s.is_credit_sale


def test_overpayment_gives_change() -> None:
    ledger = _ledger(("amox", "100", 1))

    s = calculate_settlement(
        ledger,
        tax=TAX_13,
        discount=Discount(DiscountMode.PERCENT, Decimal("10")),
        paid_amount=Decimal("150"),
    )

    assert s.change_amount == Decimal("48.3")
    assert s.credit_amount == 0


def test_exact_payment_has_neither_credit_nor_change() -> None:
    s = calculate_settlement(_ledger(("para", "2.50", 4)), paid_amount=Decimal("10"))

    assert s.credit_amount == 0
    assert s.change_amount == 0


def test_disabled_tax_is_zero() -> None:
    s = calculate_settlement(_ledger(("amox", "100", 1)), tax=TaxConfig(rate=Decimal("13"), enabled=False))

    assert s.tax_amount == 0
    assert s.total == Decimal("100")


def test_flat_discount_ignores_percentage() -> None:
    s = calculate_settlement(
        _ledger(("amox", "100", 1)),
        tax=TAX_13,
        discount=Discount(DiscountMode.AMOUNT, Decimal("20")),
    )

    assert s.discount_amount == Decimal("20")
    assert s.total == Decimal("93")


def test_total_never_negative() -> None:
    s = calculate_settlement(
        _ledger(("para", "2.50", 2)),
        discount=Discount(DiscountMode.AMOUNT, Decimal("50")),
        paid_amount=Decimal("0"),
    )

    assert s.total == 0
    assert s.credit_amount == 0


def test_unset_paid_amount_is_all_credit() -> None:
    s = calculate_settlement(_ledger(("para", "2.50", 2)))

    assert s.paid_amount is None
    assert s.credit_amount == Decimal("5.00")


def test_settlement_law_holds_for_mixed_inputs() -> None:
    ledger = _ledger(("amox", "10", 3), ("amox", "12", 2), ("para", "2.35", 7))
    for discount in (
        Discount(DiscountMode.PERCENT, Decimal("0")),
        Discount(DiscountMode.PERCENT, Decimal("33.3")),
        Discount(DiscountMode.AMOUNT, Decimal("7.77")),
        Discount(DiscountMode.AMOUNT, Decimal("1000")),
    ):
        for paid in (Decimal("0"), Decimal("50"), Decimal("500")):
            s = calculate_settlement(ledger, tax=TAX_13, discount=discount, paid_amount=paid)
            assert s.total == max(Decimal("0"), s.subtotal + s.tax_amount - s.discount_amount)
            assert s.credit_amount + paid >= s.total
            assert s.credit_amount == 0 or s.change_amount == 0


def test_rounding_happens_once_at_presentation() -> None:
    s = calculate_settlement(_ledger(("a", "1.005", 1), ("b", "1.005", 1)))

    assert s.subtotal == Decimal("2.010")
    assert s.rounded().subtotal == Decimal("2.01")


def test_rounded_settlement_uses_two_places() -> None:
    s = calculate_settlement(
        _ledger(("amox", "100", 1)),
        tax=TAX_13,
        discount=Discount(DiscountMode.PERCENT, Decimal("10")),
        paid_amount=Decimal("100"),
    ).rounded()

    assert str(s.total) == "101.70"
    assert str(s.credit_amount) == "1.70"
    assert str(s.change_amount) == "0.00"


def test_invalid_inputs_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Discount(DiscountMode.PERCENT, Decimal("120"))
    with pytest.raises(ValidationError):
        Discount(DiscountMode.AMOUNT, Decimal("-1"))
    with pytest.raises(ValidationError):
        calculate_settlement(CartLedger.empty(), paid_amount=Decimal("-5"))
