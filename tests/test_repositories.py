"""
Tests for the Supabase repositories, against a mocked client.

Covers:
- Wrapped and bare response shapes normalize to the same rows.
- snake_case and camelCase fields are both accepted.
- APIError bodies and transport failures map onto domain errors.
- Bill payloads are rounded once, to two decimals.
- A saved item's quantity wins over stale lot details.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from conftest import grant
from domain.bill import BillStatus
from domain.buyer import BuyerInfo
from domain.cart import CartLedger
from domain.errors import InsufficientStockError, InvalidStateError, NetworkError, ServiceError
from domain.settlement import Discount, DiscountMode, TaxConfig, calculate_settlement
from repositories.allocation_repository import AllocationRepository
from repositories.catalog_repository import CatalogRepository, rows_to_entries
from repositories.patient_repository import PatientRepository, row_to_buyer
from repositories.responses import unwrap_object, unwrap_rows
from repositories.sale_repository import SaleRepository, build_bill_payload, row_to_bill
from repositories.settings_repository import SettingsRepository


def fake_client(data=None, error=None, raises=None) -> MagicMock:
    """A client whose table and rpc chains all end in one `execute()`."""

    query = MagicMock()
    for name in ("select", "eq", "or_", "limit", "order"):
        getattr(query, name).return_value = query
    if raises is not None:
        query.execute.side_effect = raises
    else:
        query.execute.return_value = SimpleNamespace(data=data, error=error)
    client = MagicMock()
    client.table.return_value = query
    client.rpc.return_value = query
    return client


ALLOCATION_ROWS = [
    {"batch_id": "i-1", "batch_number": "A1", "allocated_quantity": 3, "selling_price": 10},
    {"batchId": "i-2", "batchNumber": "A2", "allocatedQuantity": 2, "sellingPrice": "12.00"},
]


@pytest.mark.parametrize("data", [ALLOCATION_ROWS, {"allocations": ALLOCATION_ROWS}])
def test_allocation_accepts_both_shapes(data) -> None:
    client = fake_client(data)

    grants = AllocationRepository(client).allocate("amox", 5, "BR-1")

    client.rpc.assert_called_once_with(
        "allocate_stock", {"p_medicine_id": "amox", "p_quantity": 5, "p_branch_id": "BR-1"}
    )
    assert [(g.lot_code, g.granted_quantity, g.unit_price, g.lot_id) for g in grants] == [
        ("A1", 3, Decimal("10"), "i-1"),
        ("A2", 2, Decimal("12.00"), "i-2"),
    ]


def test_allocation_drops_empty_grants() -> None:
    rows = [{"batch_number": "A1", "allocated_quantity": 0, "selling_price": 10}]

    assert AllocationRepository(fake_client(rows)).allocate("amox", 1, None) == []


def test_allocation_error_body_is_insufficient_stock() -> None:
    client = fake_client({"error": "Not enough units available"})

    with pytest.raises(InsufficientStockError, match="Not enough units"):
        AllocationRepository(client).allocate("amox", 5, None)


def test_allocation_api_error_is_insufficient_stock() -> None:
    error = APIError({"message": "cannot allocate", "code": "P0001", "hint": None, "details": None})

    with pytest.raises(InsufficientStockError):
        AllocationRepository(fake_client(raises=error)).allocate("amox", 5, None)


def test_transport_failure_is_network_error() -> None:
    client = fake_client(raises=httpx.ConnectError("connection refused"))

    with pytest.raises(NetworkError):
        AllocationRepository(client).allocate("amox", 5, None)


def test_error_code_picks_domain_error() -> None:
    client = fake_client({"error": "Sale already completed", "code": "invalid_state"})

    with pytest.raises(InvalidStateError):
        SaleRepository(client).update_pending("B1", {})


def test_error_attribute_is_service_error() -> None:
    with pytest.raises(ServiceError):
        SaleRepository(fake_client(error="boom")).list_sales(None)


def test_catalog_rows_use_product_stock() -> None:
    rows = [
        {"id": "i-1", "medicine_id": "m-1", "batch_number": "A1", "selling_price": "10", "current_stock": 4,
         "total_stock": 9, "expiry_date": "2026-03-01", "medicine": {"name": "Amoxicillin", "product_code": "890"}},
        {"id": "i-2", "medicineId": "m-1", "batchNumber": "A2", "sellingPrice": 12, "currentStock": 5,
         "totalStock": 9, "name": "Amoxicillin"},
    ]

    entries = rows_to_entries(rows)

    assert [e.remaining_quantity for e in entries] == [9, 9]
    assert entries[0].barcode == "890"
    assert entries[0].expiry_date.isoformat() == "2026-03-01"
    assert entries[1].lot_code == "A2"
    assert entries[1].lot_quantity == 5


def test_catalog_falls_back_to_lot_sum() -> None:
    rows = [
        {"medicine_id": "m-1", "batch_number": "A1", "selling_price": 10, "current_stock": 4},
        {"medicine_id": "m-1", "batch_number": "A2", "selling_price": 12, "current_stock": 5},
    ]

    assert [e.remaining_quantity for e in rows_to_entries(rows)] == [9, 9]


def test_catalog_repository_filters_by_branch() -> None:
    client = fake_client({"results": [{"medicine_id": "m-1", "selling_price": 1, "current_stock": 2}]})

    entries = CatalogRepository(client).list_entries("BR-1")

    client.table.assert_called_once_with("inventory_items")
    client.table.return_value.eq.assert_called_once_with("branch_id", "BR-1")
    assert entries[0].display_name == "Unknown Medicine"


def test_patient_name_falls_back_to_parts() -> None:
    buyer = row_to_buyer({"patient_id": "P-9", "first_name": "Hari", "last_name": "KC", "phone": "98"})

    assert buyer.name == "Hari KC"
    assert buyer.external_id == "P-9"


def test_patient_search_keeps_filter_intact() -> None:
    client = fake_client([{"patient_id": "P-1", "full_name": "Sita", "phone": "98"}])

    found = PatientRepository(client).search("sita, (x)")

    pattern = client.table.return_value.or_.call_args[0][0]
    assert pattern.count(",") == 2
    assert found[0].name == "Sita"


def test_settings_defaults_when_fetch_fails() -> None:
    client = fake_client(raises=httpx.ReadTimeout("slow"))

    settings = SettingsRepository(client).get_settings("BR-1")

    assert settings.tax_rate == Decimal("13")
    assert settings.payment_methods == ("cash", "online")
    assert not settings.tax.enabled


def test_settings_row() -> None:
    client = fake_client([{"tax_rate": 0, "tax_inclusive": True, "payment_methods": ["cash"]}])

    settings = SettingsRepository(client).get_settings(None)

    assert settings.tax == TaxConfig(rate=Decimal("13"), enabled=True)
    assert settings.payment_methods == ("cash",)


def test_bill_payload_rounds_once() -> None:
    ledger = CartLedger.empty().add_allocation("amox", [grant("A1", 3, "10.005")])
    settlement = calculate_settlement(
        ledger,
        tax=TaxConfig(Decimal("13"), True),
        discount=Discount(DiscountMode.PERCENT, Decimal("10")),
    )

    payload = build_bill_payload(ledger.lines(), BuyerInfo(), settlement, "cash", "BR-1", include_payment=True)

    assert payload["subtotal"] == "30.02"
    assert payload["tax_amount"] == "3.90"
    assert payload["total"] == "30.53"
    assert payload["paid_amount"] == "0.00"
    assert payload["credit_amount"] == "30.53"
    assert payload["patient_name"] == "Walk-in Customer"
    assert payload["items"][0]["batch_info"][0]["allocated_quantity"] == 3


def test_pending_payload_has_no_payment_fields() -> None:
    ledger = CartLedger.empty().add_allocation("para", [grant("P1", 1, "2.50")])

    payload = build_bill_payload(ledger.lines(), BuyerInfo(), calculate_settlement(ledger), "cash", None)

    assert "paid_amount" not in payload
    assert "transaction_id" not in payload


def test_camel_case_bill_row() -> None:
    row = {
        "saleId": "B7",
        "saleNumber": "S-7",
        "status": "PENDING",
        "patientName": "Ram",
        "patientPhone": "98",
        "items": [{"medicineId": "para", "quantity": 2, "price": "2.50", "batch": "P1"}],
        "subtotal": "5.00",
        "taxAmount": "0",
        "discountAmount": "0",
        "totalAmount": "5.00",
        "createdAt": "2025-02-01T10:00:00+05:45",
    }

    bill = row_to_bill(row)

    assert bill.status is BillStatus.PENDING
    assert bill.label == "S-7"
    assert bill.created_at.utcoffset().total_seconds() == 0
    assert bill.ledger().total_quantity("para") == 2
    assert bill.lines[0].lot_grants[0].lot_code == "P1"


def test_sale_rpc_ack_from_list() -> None:
    client = fake_client([{"id": "B1", "sale_number": "S-1", "receipt": {"total": "5.00"}}])

    ack = SaleRepository(client).create_sale({"items": []})

    client.rpc.assert_called_once_with("create_sale", {"p_bill": {"items": []}})
    assert (ack.bill_id, ack.sale_number, ack.receipt) == ("B1", "S-1", {"total": "5.00"})


def test_delete_sends_restore_flag() -> None:
    client = fake_client(None)

    SaleRepository(client).delete_sale("B1", restore_stock=True)

    client.rpc.assert_called_once_with("delete_sale", {"p_sale_id": "B1", "p_restore_stock": True})


def test_list_sales_filters_status() -> None:
    client = fake_client({"results": []})

    assert SaleRepository(client).list_sales("BR-1", BillStatus.COMPLETED) == []
    client.table.return_value.eq.assert_any_call("status", "completed")


def test_unwrap_helpers() -> None:
    assert unwrap_rows(None) == []
    assert unwrap_rows({"id": 1}) == [{"id": 1}]
    assert unwrap_object([]) == {}
    with pytest.raises(ServiceError):
        unwrap_rows("nope")


def _saved_item(quantity, *allocated) -> dict:
    return {
        "medicine_id": "amox",
        "quantity": quantity,
        "price": "10",
        "batch_info": [
            {"inventory_item_id": f"i-{n}", "batch_number": f"A{n}", "allocated_quantity": qty, "selling_price": "10"}
            for n, qty in enumerate(allocated, start=1)
        ],
    }


def _row(*items) -> dict:
    return {"id": "B1", "status": "pending", "items": list(items), "subtotal": "0", "total": "0"}


def test_saved_quantity_trims_stale_lot_details() -> None:
    """Verify lots beyond the saved quantity are cut from the tail on read."""

    bill = row_to_bill(_row(_saved_item(3, 2, 3)))

    line = bill.lines[0]
    assert line.quantity == 3
    assert [(g.lot_code, g.granted_quantity) for g in line.lot_grants] == [("A1", 2), ("A2", 1)]


def test_saved_quantity_beyond_lots_is_service_error() -> None:
    with pytest.raises(ServiceError):
        row_to_bill(_row(_saved_item(5, 2)))


def test_saved_zero_quantity_item_is_dropped() -> None:
    bill = row_to_bill(_row(_saved_item(0, 2), {"medicine_id": "para", "quantity": 1, "price": "2.50"}))

    assert [line.product_id for line in bill.lines] == ["para"]


def test_bill_payload_keeps_exact_unit_price() -> None:
    ledger = CartLedger.empty().add_allocation("para", [grant("P1", 2, "0.125")])

    payload = build_bill_payload(ledger.lines(), BuyerInfo(), calculate_settlement(ledger), "cash", None)

    item = payload["items"][0]
    assert item["price"] == "0.125"
    assert item["batch_info"][0]["selling_price"] == "0.125"
    assert payload["subtotal"] == "0.25"
