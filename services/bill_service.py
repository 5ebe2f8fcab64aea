"""
Bill lifecycle service: save as pending, resume, finalize, delete.

State machine per bill:
    editing -> (save) -> pending -> (resume) -> editing -> (finalize) -> completed
    editing -> (finalize) -> completed

Only pending and completed are persisted. Failures from the sale service leave
local state untouched and propagate, so the screen keeps everything the
cashier entered.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from domain.bill import BillRecord, BillStatus
from domain.buyer import BuyerInfo
from domain.cart import CartLedger
from domain.errors import InvalidStateError, ServiceError, ValidationError
from domain.session import SessionContext
from domain.settlement import Settlement
from domain.time import utc_now
from repositories.sale_repository import SaleAck, build_bill_payload
from repositories.settings_repository import DEFAULT_PAYMENT_METHODS
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

PAGE_SIZE = 5
CREDIT = "credit"
ONLINE = "online"
STATUS_FILTERS = ("all", BillStatus.PENDING.value, BillStatus.COMPLETED.value)


class SaleGateway(Protocol):
    def create_sale(self, payload: Dict[str, Any]) -> SaleAck: ...

    def save_pending(self, payload: Dict[str, Any]) -> SaleAck: ...

    def update_pending(self, bill_id: str, payload: Dict[str, Any]) -> SaleAck: ...

    def complete_pending(self, bill_id: str, payload: Dict[str, Any]) -> SaleAck: ...

    def delete_sale(self, bill_id: str, *, restore_stock: bool = False) -> None: ...

    def get_sale(self, bill_id: str) -> Optional[BillRecord]: ...

    def list_sales(self, branch_id: Optional[str], status: Optional[BillStatus] = None) -> List[BillRecord]: ...

    def receipt(self, bill_id: str) -> Dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class FinalizedSale:
    bill: BillRecord
    receipt: Optional[Dict[str, Any]] = None

    @property
    def message(self) -> str:
        shown = self.bill.settlement.rounded()
        if shown.credit_amount > 0:
            return f"Credit sale completed. Due: {shown.credit_amount} - Bill: {self.bill.label}"
        return f"Sale completed for {shown.total} - Bill: {self.bill.label}"


@dataclass(frozen=True, slots=True)
class BillPage:
    bills: List[BillRecord]
    page: int
    total_pages: int
    total_count: int


def online_transaction_id() -> str:
    return f"TXN_{int(time.time() * 1000)}"


class BillLifecycleManager:
    """Orchestrates bill persistence through the sale service."""

    def __init__(
        self,
        gateway: SaleGateway,
        session: SessionContext,
        *,
        catalog: Optional[CatalogService] = None,
        payment_methods: Iterable[str] = DEFAULT_PAYMENT_METHODS,
    ):
        self._gateway = gateway
        self._session = session
        self._catalog = catalog
        self._payment_methods = tuple(payment_methods)
        self._bills: Dict[str, BillRecord] = {}

    @property
    def payment_methods(self) -> Tuple[str, ...]:
        return self._payment_methods + ((CREDIT,) if CREDIT not in self._payment_methods else ())

    # -- queries -----------------------------------------------------------

    def refresh(self) -> List[BillRecord]:
        bills = self._gateway.list_sales(self._session.branch_id)
        self._bills = {bill.id: bill for bill in bills}
        return bills

    def pending_bills(self) -> List[BillRecord]:
        return [bill for bill in self._bills.values() if bill.status is BillStatus.PENDING]

    def cached(self, bill_id: str) -> Optional[BillRecord]:
        return self._bills.get(bill_id)

    def get(self, bill_id: str) -> BillRecord:
        """Fetch the current record from the service, falling back to the local copy."""

        record = self._gateway.get_sale(bill_id) or self._bills.get(bill_id)
        if record is None:
            raise InvalidStateError(f"Bill {bill_id} does not exist")
        self._bills[record.id] = record
        return record

    def search(self, term: str = "", status: str = "all", page: int = 1) -> BillPage:
        """Filter known bills by buyer name, bill id or phone, then paginate."""

        if status not in STATUS_FILTERS:
            raise ValidationError(f"status must be one of {', '.join(STATUS_FILTERS)}")
        matches = [
            bill
            for bill in self._bills.values()
            if bill.matches(term) and (status == "all" or bill.status.value == status)
        ]
        total_pages = max(1, math.ceil(len(matches) / PAGE_SIZE))
        page = min(max(1, page), total_pages)
        start = (page - 1) * PAGE_SIZE
        return BillPage(
            bills=matches[start:start + PAGE_SIZE],
            page=page,
            total_pages=total_pages,
            total_count=len(matches),
        )

    def receipt(self, bill_id: str) -> Dict[str, Any]:
        return self._gateway.receipt(bill_id)

    # -- transitions -------------------------------------------------------

    def save_draft(
        self,
        ledger: CartLedger,
        buyer: BuyerInfo,
        settlement: Settlement,
        editing_id: Optional[str] = None,
        *,
        payment_method: str = "cash",
    ) -> BillRecord:
        """
        Persist the cart as a pending bill.

        With `editing_id`, the existing pending bill is updated in place.

        Raises:
            ValidationError: empty cart
            InvalidStateError: `editing_id` is not a pending bill
        """

        if ledger.is_empty():
            raise ValidationError("Add items to the cart before saving")

        existing: Optional[BillRecord] = None
        if editing_id is not None:
            existing = self._require_pending(editing_id, "update")

        payload = build_bill_payload(ledger, buyer, settlement, payment_method, self._session.branch_id)
        if existing is not None:
            ack = self._gateway.update_pending(existing.id, payload)
            bill_id = existing.id
        else:
            ack = self._gateway.save_pending(payload)
            bill_id = ack.bill_id or ack.sale_number
            if bill_id is None:
                raise ServiceError("Sale service did not return an id for the saved bill")

        record = BillRecord(
            id=bill_id,
            status=BillStatus.PENDING,
            buyer=buyer,
            lines=tuple(ledger.lines()),
            settlement=settlement,
            payment_method=payment_method,
            created_at=existing.created_at if existing is not None else utc_now(),
            sale_number=ack.sale_number or (existing.sale_number if existing is not None else None),
        )
        self._bills[record.id] = record
        logger.info("%s pending bill %s", "Updated" if existing is not None else "Saved", record.label)
        return record

    def resume(self, bill_id: str) -> Tuple[CartLedger, BuyerInfo]:
        """Load a pending bill back into an editable ledger."""

        record = self._require_pending(bill_id, "resume")
        logger.info("Resumed pending bill %s", record.label)
        return record.ledger(), record.buyer

    def finalize(
        self,
        ledger: CartLedger,
        buyer: BuyerInfo,
        settlement: Settlement,
        payment_method: str,
        editing_id: Optional[str] = None,
        *,
        transaction_id: Optional[str] = None,
    ) -> FinalizedSale:
        """
        Commit the sale. The sale service re-validates stock and decrements it
        permanently; if it refuses, nothing changes locally.

        Raises:
            ValidationError: empty cart, unknown payment method, or credit for
                a buyer without name and phone
            InvalidStateError: `editing_id` is already completed
            InsufficientStockError: stock changed since allocation
        """

        self._validate_finalize(ledger, buyer, settlement, payment_method)

        existing: Optional[BillRecord] = None
        if editing_id is not None:
            existing = self._require_pending(editing_id, "finalize")

        if transaction_id is None:
            transaction_id = online_transaction_id() if payment_method == ONLINE else ""
        payload = build_bill_payload(
            ledger,
            buyer,
            settlement,
            payment_method,
            self._session.branch_id,
            include_payment=True,
            transaction_id=transaction_id,
            sale_id=editing_id,
        )

        if existing is not None:
            ack = self._gateway.complete_pending(existing.id, payload)
            record = replace(
                existing,
                buyer=buyer,
                lines=tuple(ledger.lines()),
                settlement=settlement,
                payment_method=payment_method,
                sale_number=ack.sale_number or existing.sale_number,
            ).completed()
        else:
            ack = self._gateway.create_sale(payload)
            bill_id = ack.bill_id or ack.sale_number
            if bill_id is None:
                raise ServiceError("Sale service did not return an id for the sale")
            record = BillRecord(
                id=bill_id,
                status=BillStatus.COMPLETED,
                buyer=buyer,
                lines=tuple(ledger.lines()),
                settlement=settlement,
                payment_method=payment_method,
                created_at=utc_now(),
                sale_number=ack.sale_number,
            )

        self._bills[record.id] = record
        sale = FinalizedSale(bill=record, receipt=ack.receipt)
        logger.info(sale.message)
        if self._catalog is not None:
            self._catalog.refresh_quietly()
        return sale

    def delete(self, bill_id: str) -> None:
        """
        Delete a bill. A completed bill's stock is restored by the sale service
        first; the local record goes away only once that succeeds.
        """

        record = self._bills.get(bill_id) or self._gateway.get_sale(bill_id)
        completed = record is None or record.status is BillStatus.COMPLETED
        self._gateway.delete_sale(bill_id, restore_stock=completed)
        self._bills.pop(bill_id, None)
        logger.info("Deleted bill %s", record.label if record is not None else bill_id)
        if completed and self._catalog is not None:
            self._catalog.refresh_quietly()

    # -- helpers -----------------------------------------------------------

    def _require_pending(self, bill_id: str, action: str) -> BillRecord:
        record = self.get(bill_id)
        if record.status is not BillStatus.PENDING:
            raise InvalidStateError(f"Cannot {action} bill {record.label}: it is {record.status.value}")
        return record

    def _validate_finalize(
        self,
        ledger: CartLedger,
        buyer: BuyerInfo,
        settlement: Settlement,
        payment_method: str,
    ) -> None:
        if ledger.is_empty():
            raise ValidationError("Add items to the cart before checkout")
        if not payment_method:
            raise ValidationError("Select a payment method")
        if payment_method not in self.payment_methods:
            raise ValidationError(
                f"Payment method {payment_method!r} is not enabled; use one of {', '.join(self.payment_methods)}"
            )
        if (settlement.is_credit_sale or payment_method == CREDIT) and not buyer.can_take_credit():
            raise ValidationError("Credit sales need the buyer's name and phone number")


__all__ = ["BillLifecycleManager", "BillPage", "FinalizedSale", "PAGE_SIZE", "SaleGateway", "online_transaction_id"]
