"""
Catalog repository: sellable inventory lots for a branch.

Rows come from `inventory_items` with the medicine embedded. The product-level
stock (`total_stock`) is used as the sellable quantity; rows that omit it get
the sum of their product's lot stock.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.catalog import CatalogEntry
from domain.money import to_decimal
from repositories.responses import call, optional_str, pick, unwrap_rows

_INVENTORY_TABLE: str = "inventory_items"
_SELECT = (
    "id, medicine_id, batch_number, selling_price, current_stock, total_stock, "
    "expiry_date, unit, medicine:medicines(name, product_code)"
)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def rows_to_entries(rows: List[Mapping[str, Any]]) -> List[CatalogEntry]:
    """Convert raw inventory rows into catalog entries."""

    lot_totals: Dict[str, int] = {}
    for row in rows:
        product_id = str(pick(row, "medicine_id", "medicineId"))
        lot_totals[product_id] = lot_totals.get(product_id, 0) + int(
            pick(row, "current_stock", "currentStock", default=0)
        )

    entries: List[CatalogEntry] = []
    for row in rows:
        product_id = str(pick(row, "medicine_id", "medicineId"))
        medicine = row.get("medicine") or {}
        total_stock = pick(row, "total_stock", "totalStock")
        remaining = int(total_stock) if total_stock is not None else lot_totals[product_id]
        lot_stock = pick(row, "current_stock", "currentStock")

        entries.append(
            CatalogEntry(
                product_id=product_id,
                display_name=str(pick(medicine, "name", default=None) or pick(row, "name", default="Unknown Medicine")),
                lot_code=str(pick(row, "batch_number", "batchNumber", "batch", default="")),
                unit_price=to_decimal(pick(row, "selling_price", "sellingPrice", "price"), name="selling_price"),
                remaining_quantity=max(0, remaining),
                unit_of_measure=optional_str(row.get("unit")),
                expiry_date=_parse_date(pick(row, "expiry_date", "expiryDate", "expiry")),
                barcode=str(pick(medicine, "product_code", default=None) or row.get("barcode") or ""),
                lot_quantity=int(lot_stock) if lot_stock is not None else None,
            )
        )
    return entries


class CatalogRepository:
    """Reads the branch's inventory lots."""

    def __init__(self, client: Client):
        self._client = client

    def list_entries(self, branch_id: Optional[str]) -> List[CatalogEntry]:
        def run():
            query = self._client.table(_INVENTORY_TABLE).select(_SELECT)
            if branch_id:
                query = query.eq("branch_id", branch_id)
            return query.execute()

        data = call("Fetch inventory", run)
        return rows_to_entries(unwrap_rows(data, "results", "items"))


__all__ = ["CatalogRepository", "rows_to_entries"]
