"""
Allocation repository: reserves stock on specific lots.

Calls the `allocate_stock` RPC, which picks lots server-side (FEFO / price
order is the server's concern) and answers with one grant per lot touched.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.cart import LotGrant
from domain.errors import InsufficientStockError
from domain.money import to_decimal
from repositories.responses import call, optional_str, pick, unwrap_rows


def row_to_grant(row: Mapping[str, Any]) -> LotGrant:
    return LotGrant(
        lot_code=str(pick(row, "batch_number", "batchNumber", default="")),
        granted_quantity=int(pick(row, "allocated_quantity", "allocatedQuantity", default=0)),
        unit_price=to_decimal(pick(row, "selling_price", "sellingPrice"), name="selling_price"),
        lot_id=optional_str(pick(row, "batch_id", "batchId", "inventory_item_id")),
    )


class AllocationRepository:
    """Talks to the server-side stock allocation service."""

    def __init__(self, client: Client):
        self._client = client

    def allocate(self, product_id: str, quantity: int, branch_id: Optional[str]) -> List[LotGrant]:
        """
        Request `quantity` units of a product.

        Raises:
            InsufficientStockError: the service rejected the request
            NetworkError: transport failure
        """

        params = {
            "p_medicine_id": product_id,
            "p_quantity": quantity,
            "p_branch_id": branch_id,
        }
        data = call(
            f"Allocate {quantity} x {product_id}",
            lambda: self._client.rpc("allocate_stock", params).execute(),
            fallback=InsufficientStockError,
        )
        rows = unwrap_rows(data, "allocations")
        return [row_to_grant(row) for row in rows if int(pick(row, "allocated_quantity", "allocatedQuantity", default=0)) > 0]


__all__ = ["AllocationRepository", "row_to_grant"]
