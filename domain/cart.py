"""
Domain: Cart ledger of price-tiered lines backed by lot grants.

Contract:
- A LotGrant is a quantity reserved on one physical lot at that lot's price.
- A CartLine is keyed by (product_id, unit_price); its quantity is always the
  sum of its grants' quantities.
- Grants at different prices never share a line, even when they came from the
  same allocation call.
- Lines are removed when their quantity reaches zero.

The ledger is immutable: every transition returns a new CartLedger, so a
failed operation can never leave a half-applied change behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple


class LineKey(NamedTuple):
    """Composite cart key. Decimal equality makes 10 and 10.00 the same tier."""

    product_id: str
    unit_price: Decimal


@dataclass(frozen=True, slots=True)
class LotGrant:
    """Immutable grant issued by the allocation service for one lot."""

    lot_code: str
    granted_quantity: int
    unit_price: Decimal
    lot_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.granted_quantity <= 0:
            raise ValueError("granted_quantity must be positive")
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")

    def with_quantity(self, quantity: int) -> "LotGrant":
        return LotGrant(
            lot_code=self.lot_code,
            granted_quantity=quantity,
            unit_price=self.unit_price,
            lot_id=self.lot_id,
        )


@dataclass(frozen=True, slots=True)
class CartLine:
    """One price tier of one product."""

    product_id: str
    unit_price: Decimal
    lot_grants: Tuple[LotGrant, ...]
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.lot_grants:
            raise ValueError("CartLine requires at least one lot grant")
        for grant in self.lot_grants:
            if grant.unit_price != self.unit_price:
                raise ValueError(
                    f"Grant for lot {grant.lot_code} is priced {grant.unit_price}, "
                    f"line is priced {self.unit_price}"
                )

    @property
    def key(self) -> LineKey:
        return LineKey(self.product_id, self.unit_price)

    @property
    def quantity(self) -> int:
        return sum(grant.granted_quantity for grant in self.lot_grants)

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def lot_codes(self) -> List[str]:
        return [grant.lot_code for grant in self.lot_grants]

    def absorb(self, grants: Iterable[LotGrant]) -> "CartLine":
        return CartLine(
            product_id=self.product_id,
            unit_price=self.unit_price,
            lot_grants=self.lot_grants + tuple(grants),
            display_name=self.display_name,
        )

    def truncated(self, new_quantity: int) -> Tuple[Optional["CartLine"], Tuple[LotGrant, ...]]:
        """
        Shrink to `new_quantity` by releasing stock from the tail of the grants.

        Returns the shrunk line (None when it reaches zero) and the released
        portions.
        """

        if new_quantity < 0:
            raise ValueError("quantity must be >= 0")
        if new_quantity > self.quantity:
            raise ValueError("truncated() cannot grow a line; allocate more stock instead")

        kept: List[LotGrant] = []
        released: List[LotGrant] = []
        remaining = new_quantity
        for grant in self.lot_grants:
            if remaining >= grant.granted_quantity:
                kept.append(grant)
                remaining -= grant.granted_quantity
            elif remaining > 0:
                kept.append(grant.with_quantity(remaining))
                released.append(grant.with_quantity(grant.granted_quantity - remaining))
                remaining = 0
            else:
                released.append(grant)

        if not kept:
            return None, tuple(released)
        line = CartLine(
            product_id=self.product_id,
            unit_price=self.unit_price,
            lot_grants=tuple(kept),
            display_name=self.display_name,
        )
        return line, tuple(released)


@dataclass(frozen=True, slots=True)
class CartLedger:
    """
    Ordered set of cart lines keyed by (product_id, unit_price).

    Enforces:
    - Uniqueness of the line key.
    - quantity == sum(granted_quantity) for every line (by construction).
    """

    _lines: Mapping[LineKey, CartLine]

    @staticmethod
    def empty() -> "CartLedger":
        return CartLedger(_lines={})

    @staticmethod
    def from_lines(lines: Iterable[CartLine]) -> "CartLedger":
        ledger = CartLedger.empty()
        for line in lines:
            ledger = ledger.add_allocation(line.product_id, line.lot_grants, display_name=line.display_name)
        return ledger

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def keys(self) -> List[LineKey]:
        return list(self._lines.keys())

    def get(self, key: LineKey) -> Optional[CartLine]:
        return self._lines.get(key)

    def require(self, key: LineKey) -> CartLine:
        line = self._lines.get(key)
        if line is None:
            raise KeyError(f"No cart line for product {key.product_id} at {key.unit_price}")
        return line

    def total_quantity(self, product_id: str) -> int:
        """Sum across every price tier of the product."""

        return sum(line.quantity for line in self._lines.values() if line.product_id == product_id)

    def add_allocation(
        self,
        product_id: str,
        grants: Iterable[LotGrant],
        *,
        display_name: str = "",
    ) -> "CartLedger":
        """
        Merge a fresh allocation into the ledger.

        Grants are grouped by unit price; each group grows the line with the
        same (product_id, price) or creates a new one.
        """

        groups: Dict[Decimal, List[LotGrant]] = {}
        for grant in grants:
            groups.setdefault(grant.unit_price, []).append(grant)
        if not groups:
            return self

        updated: Dict[LineKey, CartLine] = dict(self._lines)
        for price, group in groups.items():
            key = LineKey(product_id, price)
            existing = updated.get(key)
            if existing is not None:
                updated[key] = existing.absorb(group)
            else:
                updated[key] = CartLine(
                    product_id=product_id,
                    unit_price=price,
                    lot_grants=tuple(group),
                    display_name=display_name,
                )
        return CartLedger(_lines=updated)

    def shrink(self, key: LineKey, new_quantity: int) -> Tuple["CartLedger", Tuple[LotGrant, ...]]:
        """Reduce a line to `new_quantity`; zero removes it. Returns released grants."""

        line = self.require(key)
        if new_quantity == line.quantity:
            return self, ()

        shrunk, released = line.truncated(new_quantity)
        updated: Dict[LineKey, CartLine] = dict(self._lines)
        if shrunk is None:
            del updated[key]
        else:
            updated[key] = shrunk
        return CartLedger(_lines=updated), released

    def remove(self, key: LineKey) -> Tuple["CartLedger", Tuple[LotGrant, ...]]:
        line = self.require(key)
        updated: Dict[LineKey, CartLine] = dict(self._lines)
        del updated[key]
        return CartLedger(_lines=updated), line.lot_grants


__all__ = ["CartLedger", "CartLine", "LineKey", "LotGrant"]
