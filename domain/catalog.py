"""
Domain: Catalog snapshot of sellable stock for the active branch.

Contract:
- A CatalogEntry is one physical lot of a product (price, expiry, lot stock).
- `remaining_quantity` is the product-level stock at the branch, identical on
  every lot of the same product.
- The snapshot is read-only. It is replaced wholesale after every allocation,
  sale completion or sale deletion.
- Availability for billing is the catalog stock minus what the cart already
  holds for that product, across all price tiers.

This module contains only pure domain entities: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from .cart import CartLedger


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Immutable projection of one sellable lot."""

    product_id: str
    display_name: str
    lot_code: str
    unit_price: Decimal
    remaining_quantity: int
    unit_of_measure: Optional[str] = None
    expiry_date: Optional[date] = None
    barcode: str = ""
    lot_quantity: Optional[int] = None

    def __post_init__(self) -> None:
        if self.remaining_quantity < 0:
            raise ValueError("remaining_quantity must be >= 0")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

    def matches(self, term: str) -> bool:
        """Name and lot code match case-insensitively, barcode by substring."""

        needle = term.strip().lower()
        if not needle:
            return True
        return (
            needle in self.display_name.lower()
            or needle in self.lot_code.lower()
            or term.strip() in self.barcode
        )


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """Point-in-time view of the branch catalog."""

    entries: Tuple[CatalogEntry, ...] = ()

    @staticmethod
    def of(entries: Sequence[CatalogEntry]) -> "CatalogSnapshot":
        # Products with no stock at the branch are not sellable.
        return CatalogSnapshot(entries=tuple(e for e in entries if e.remaining_quantity > 0))

    def list(self) -> List[CatalogEntry]:
        return list(self.entries)

    def search(self, term: str) -> List[CatalogEntry]:
        return [entry for entry in self.entries if entry.matches(term)]

    def find(self, product_id: str) -> Optional[CatalogEntry]:
        for entry in self.entries:
            if entry.product_id == product_id:
                return entry
        return None

    def remaining_quantity(self, product_id: str) -> int:
        entry = self.find(product_id)
        return entry.remaining_quantity if entry is not None else 0

    def available_quantity(self, product_id: str, ledger: CartLedger) -> int:
        """Catalog stock minus everything already reserved in the cart, floored at 0."""

        return max(0, self.remaining_quantity(product_id) - ledger.total_quantity(product_id))

    def by_product(self) -> Dict[str, List[CatalogEntry]]:
        grouped: Dict[str, List[CatalogEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.product_id, []).append(entry)
        return grouped


__all__ = ["CatalogEntry", "CatalogSnapshot"]
