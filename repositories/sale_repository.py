"""
Sale repository (persistence).

Wraps the sale service RPCs. It builds the wire payload from domain objects
and parses bill rows back into BillRecord; it does not enforce lifecycle
rules (those live in services/bill_service.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.bill import BillRecord, BillStatus
from domain.buyer import WALK_IN_NAME, BuyerInfo
from domain.cart import CartLine, LotGrant
from domain.errors import ServiceError
from domain.money import ZERO, to_decimal
from domain.settlement import Settlement
from domain.time import parse_utc_datetime, utc_now
from repositories.allocation_repository import row_to_grant
from repositories.responses import call, optional_str, pick, unwrap_object, unwrap_rows

_SALES_TABLE: str = "sales"


@dataclass(frozen=True, slots=True)
class SaleAck:
    """What the sale service answers after a write."""

    bill_id: Optional[str]
    sale_number: Optional[str]
    receipt: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _line_payload(line: CartLine) -> Dict[str, Any]:
    return {
        "medicine_id": line.product_id,
        "quantity": line.quantity,
        "price": str(line.unit_price),
        "batch": line.lot_grants[0].lot_code,
        "batch_info": [
            {
                "inventory_item_id": grant.lot_id,
                "batch_number": grant.lot_code,
                "allocated_quantity": grant.granted_quantity,
                "selling_price": str(grant.unit_price),
            }
            for grant in line.lot_grants
        ],
    }


def build_bill_payload(
    lines: Iterable[CartLine],
    buyer: BuyerInfo,
    settlement: Settlement,
    payment_method: str,
    branch_id: Optional[str],
    *,
    include_payment: bool = False,
    transaction_id: str = "",
    sale_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Serialize a bill. Money is rounded here, once, to two decimals."""

    shown = settlement.rounded()
    payload: Dict[str, Any] = {
        "patient_id": buyer.external_id or "",
        "patient_name": buyer.display_name,
        "patient_age": buyer.age or "",
        "patient_phone": buyer.phone,
        "patient_gender": buyer.gender or "",
        "branch_id": branch_id,
        "items": [_line_payload(line) for line in lines],
        "subtotal": str(shown.subtotal),
        "total": str(shown.total),
        "discount_amount": str(shown.discount_amount),
        "tax_amount": str(shown.tax_amount),
        "payment_method": payment_method,
    }
    if include_payment:
        payload["paid_amount"] = str(shown.paid_amount) if shown.paid_amount is not None else "0.00"
        payload["credit_amount"] = str(shown.credit_amount)
        payload["transaction_id"] = transaction_id
        payload["sale_id"] = sale_id
    return payload


def _row_to_line(item: Mapping[str, Any]) -> Optional[CartLine]:
    """
    Parse one saved bill item. `quantity` is authoritative: lot grants beyond
    it are cut from the tail, and grants that fall short are a service fault.
    Returns None for an item saved with quantity 0.
    """

    product_id = str(pick(item, "medicine_id", "medicineId"))
    price = to_decimal(pick(item, "price", "unit_price", "selling_price"), name="price")
    quantity = int(pick(item, "quantity", default=0))
    display_name = str(pick(item, "name", "medicine_name", default=""))
    batch_info = pick(item, "batch_info", "batchInfo", default=[]) or []
    # The line price is authoritative for every lot under it.
    grants = [
        row_to_grant({**batch, "selling_price": price})
        for batch in batch_info
        if int(pick(batch, "allocated_quantity", "allocatedQuantity", default=0)) > 0
    ]
    if quantity <= 0:
        return None
    if not grants:
        grants = [LotGrant(lot_code=str(pick(item, "batch", default="")), granted_quantity=quantity, unit_price=price)]

    line = CartLine(product_id=product_id, unit_price=price, lot_grants=tuple(grants), display_name=display_name)
    if line.quantity < quantity:
        raise ServiceError(
            f"Saved item {product_id} has {quantity} units but only {line.quantity} allocated across its lots"
        )
    if line.quantity > quantity:
        line, _ = line.truncated(quantity)
    return line


def row_to_bill(row: Mapping[str, Any]) -> BillRecord:
    """Parse a sale row (snake_case or camelCase) into a BillRecord."""

    total = to_decimal(pick(row, "total", "total_amount", "totalAmount"))
    paid_raw = pick(row, "paid_amount", "paidAmount")
    paid = to_decimal(paid_raw) if paid_raw is not None else None
    credit = to_decimal(pick(row, "credit_amount", "creditAmount"))
    change = max(ZERO, (paid or ZERO) - total)

    name = str(pick(row, "patient_name", "patientName", default=""))
    buyer = BuyerInfo(
        name="" if name == WALK_IN_NAME else name,
        phone=str(pick(row, "patient_phone", "patientPhone", default="")),
        external_id=optional_str(pick(row, "patient_id", "patientId")),
        age=optional_str(pick(row, "patient_age", "patientAge")),
        gender=optional_str(pick(row, "patient_gender", "patientGender")),
    )
    settlement = Settlement(
        subtotal=to_decimal(pick(row, "subtotal")),
        tax_amount=to_decimal(pick(row, "tax_amount", "taxAmount")),
        discount_amount=to_decimal(pick(row, "discount_amount", "discountAmount")),
        total=total,
        paid_amount=paid,
        credit_amount=credit,
        change_amount=change,
    )
    created = pick(row, "created_at", "createdAt")
    return BillRecord(
        id=str(pick(row, "id", "sale_id", "saleId")),
        status=BillStatus(str(pick(row, "status", default="completed")).lower()),
        buyer=buyer,
        lines=tuple(
            line
            for line in (_row_to_line(item) for item in (pick(row, "items", "sale_items", default=[]) or []))
            if line is not None
        ),
        settlement=settlement,
        payment_method=str(pick(row, "payment_method", "paymentMethod", default="cash")),
        created_at=parse_utc_datetime(created) if created else utc_now(),
        sale_number=optional_str(pick(row, "sale_number", "saleNumber")),
    )


def _ack(data: Any) -> SaleAck:
    body = unwrap_object(data)
    receipt = body.get("receipt")
    return SaleAck(
        bill_id=optional_str(pick(body, "id", "sale_id", "saleId")),
        sale_number=optional_str(pick(body, "sale_number", "saleNumber")),
        receipt=dict(receipt) if isinstance(receipt, Mapping) else None,
        raw=body,
    )


class SaleRepository:
    """Persistence for pending and completed bills."""

    def __init__(self, client: Client):
        self._client = client

    def _rpc(self, action: str, name: str, params: Dict[str, Any]) -> Any:
        return call(action, lambda: self._client.rpc(name, params).execute())

    def create_sale(self, payload: Dict[str, Any]) -> SaleAck:
        return _ack(self._rpc("Create sale", "create_sale", {"p_bill": payload}))

    def save_pending(self, payload: Dict[str, Any]) -> SaleAck:
        return _ack(self._rpc("Save pending bill", "save_pending_sale", {"p_bill": payload}))

    def update_pending(self, bill_id: str, payload: Dict[str, Any]) -> SaleAck:
        return _ack(
            self._rpc("Update pending bill", "update_pending_sale", {"p_sale_id": bill_id, "p_bill": payload})
        )

    def complete_pending(self, bill_id: str, payload: Dict[str, Any]) -> SaleAck:
        return _ack(
            self._rpc("Complete pending bill", "complete_pending_sale", {"p_sale_id": bill_id, "p_bill": payload})
        )

    def delete_sale(self, bill_id: str, *, restore_stock: bool = False) -> None:
        """Delete a bill. With `restore_stock` the server reverses the sale's stock decrement."""
        self._rpc("Delete bill", "delete_sale", {"p_sale_id": bill_id, "p_restore_stock": restore_stock})

    def get_sale(self, bill_id: str) -> Optional[BillRecord]:
        data = call(
            "Fetch bill",
            lambda: self._client.table(_SALES_TABLE).select("*").eq("id", bill_id).limit(1).execute(),
        )
        rows = unwrap_rows(data, "results")
        return row_to_bill(rows[0]) if rows else None

    def list_sales(self, branch_id: Optional[str], status: Optional[BillStatus] = None) -> List[BillRecord]:
        def run():
            query = self._client.table(_SALES_TABLE).select("*")
            if branch_id:
                query = query.eq("branch_id", branch_id)
            if status is not None:
                query = query.eq("status", status.value)
            return query.order("created_at", desc=True).execute()

        data = call("List bills", run)
        return [row_to_bill(row) for row in unwrap_rows(data, "results")]

    def receipt(self, bill_id: str) -> Dict[str, Any]:
        return unwrap_object(self._rpc("Fetch receipt", "sale_receipt", {"p_sale_id": bill_id}))


__all__ = ["SaleAck", "SaleRepository", "build_bill_payload", "row_to_bill"]
