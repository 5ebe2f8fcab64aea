"""
Billing session: the transient `editing` state of one billing screen.

Holds the cart, buyer, discount, paid amount, payment method and the id of the
pending bill being edited, and wires them into the lifecycle operations so a
resumed bill is saved or finalized in place rather than duplicated.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from domain.bill import BillRecord
from domain.buyer import BuyerInfo
from domain.cart import CartLedger, LineKey
from domain.catalog import CatalogEntry
from domain.errors import ValidationError
from domain.money import ZERO, parse_optional_amount
from domain.session import SessionContext
from domain.settlement import Discount, DiscountMode, Settlement, calculate_settlement
from repositories.settings_repository import PosSettings
from services.bill_service import BillLifecycleManager, BillPage, FinalizedSale
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.patient_service import PatientResolver


class BillingSession:
    def __init__(
        self,
        session: SessionContext,
        *,
        catalog: CatalogService,
        cart: CartService,
        bills: BillLifecycleManager,
        patients: PatientResolver,
        settings: PosSettings,
    ):
        self.session = session
        self.catalog = catalog
        self.cart = cart
        self.bills = bills
        self.patients = patients
        self.settings = settings
        self._reset_fields()

    def _reset_fields(self) -> None:
        self.buyer = BuyerInfo()
        self.discount_mode = DiscountMode.PERCENT
        self.flat_discount: Decimal = ZERO
        self.paid_amount: Optional[Decimal] = None
        self.payment_method = "cash"
        self.editing_id: Optional[str] = None

    # -- screen state ------------------------------------------------------

    @property
    def ledger(self) -> CartLedger:
        return self.cart.ledger

    @property
    def discount(self) -> Discount:
        if self.discount_mode is DiscountMode.AMOUNT:
            return Discount(DiscountMode.AMOUNT, self.flat_discount)
        return Discount(DiscountMode.PERCENT, self.buyer.discount_percent)

    def settlement(self) -> Settlement:
        return calculate_settlement(
            self.cart.ledger,
            tax=self.settings.tax,
            discount=self.discount,
            paid_amount=self.paid_amount,
        )

    def set_buyer(self, buyer: BuyerInfo) -> None:
        self.buyer = buyer

    def search_patients(self, term: str) -> List[BuyerInfo]:
        return self.patients.search(term)

    def select_patient(self, patient: BuyerInfo) -> None:
        self.buyer = patient.with_discount(ZERO)

    def set_discount(self, mode: DiscountMode, value: Decimal) -> None:
        discount = Discount(mode, value)
        self.discount_mode = discount.mode
        if discount.mode is DiscountMode.PERCENT:
            self.buyer = self.buyer.with_discount(discount.value)
        else:
            self.flat_discount = discount.value

    def set_paid_amount_text(self, text: Optional[str]) -> None:
        try:
            amount = parse_optional_amount(text, name="paid amount")
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
        if amount is not None and amount < 0:
            raise ValidationError("paid amount must be >= 0")
        self.paid_amount = amount

    def set_payment_method(self, method: str) -> None:
        if method not in self.bills.payment_methods:
            raise ValidationError(f"Payment method {method!r} is not enabled")
        self.payment_method = method

    # -- cart --------------------------------------------------------------

    def search_catalog(self, term: str) -> List[CatalogEntry]:
        return self.catalog.search(term)

    def add_product(self, product_id: str, quantity: int = 1) -> CartLedger:
        return self.cart.add_product(product_id, quantity)

    def set_quantity(self, key: LineKey, quantity: int) -> CartLedger:
        return self.cart.set_quantity(key, quantity)

    def remove_line(self, key: LineKey) -> CartLedger:
        return self.cart.remove(key)

    # -- lifecycle ---------------------------------------------------------

    def clear(self) -> None:
        """Discard the bill on screen (in-flight allocations are dropped)."""
        self.cart.clear()
        self._reset_fields()

    def save_draft(self) -> BillRecord:
        record = self.bills.save_draft(
            self.cart.ledger,
            self.buyer,
            self.settlement(),
            self.editing_id,
            payment_method=self.payment_method,
        )
        self.clear()
        return record

    def resume(self, bill_id: str) -> Optional[BillRecord]:
        ledger, buyer = self.bills.resume(bill_id)
        self.cart.load(ledger)
        self._reset_fields()
        self.buyer = buyer.with_discount(ZERO)
        self.editing_id = bill_id
        return self.bills.cached(bill_id)

    def finalize(self) -> FinalizedSale:
        sale = self.bills.finalize(
            self.cart.ledger,
            self.buyer,
            self.settlement(),
            self.payment_method,
            self.editing_id,
        )
        self.clear()
        return sale

    def delete_bill(self, bill_id: str) -> None:
        self.bills.delete(bill_id)
        if bill_id == self.editing_id:
            self.clear()

    def bill_history(self, term: str = "", status: str = "all", page: int = 1) -> BillPage:
        return self.bills.search(term, status, page)


def create_billing_session(client, session: SessionContext) -> BillingSession:
    """Wire a BillingSession against the Supabase-backed repositories."""

    from repositories.allocation_repository import AllocationRepository
    from repositories.catalog_repository import CatalogRepository
    from repositories.patient_repository import PatientRepository
    from repositories.sale_repository import SaleRepository
    from repositories.settings_repository import SettingsRepository
    from services.allocation_service import AllocationClient

    settings = SettingsRepository(client).get_settings(session.branch_id)
    catalog = CatalogService(CatalogRepository(client), session)
    catalog.refresh_quietly()
    bills = BillLifecycleManager(
        SaleRepository(client),
        session,
        catalog=catalog,
        payment_methods=settings.payment_methods,
    )
    return BillingSession(
        session,
        catalog=catalog,
        cart=CartService(catalog, AllocationClient(AllocationRepository(client), session)),
        bills=bills,
        patients=PatientResolver(PatientRepository(client)),
        settings=settings,
    )


__all__ = ["BillingSession", "create_billing_session"]
