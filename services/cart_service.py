"""
Cart service: allocation-aware edits of the on-screen cart ledger.

Handles:
- Adding products and growing lines through fresh allocations
- Shrinking and removing lines locally (released stock is left to expire)
- Per-product serialization: while an allocation for a product is in flight,
  any other edit of that product is rejected
- Cancellation: clearing or loading a different bill invalidates in-flight
  allocations, whose results are then discarded
- Uncommitted quantity text, which never touches the ledger until committed
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Set, Tuple

from domain.cart import CartLedger, LineKey, LotGrant
from domain.errors import AllocationPendingError, InsufficientStockError, ValidationError
from services.allocation_service import AllocationClient
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


def parse_quantity_text(text: Optional[str]) -> int:
    """Committed quantity input: blank means zero."""

    if text is None or not text.strip():
        return 0
    try:
        value = int(text.strip())
    except ValueError:
        raise ValidationError(f"Quantity must be a whole number, got {text!r}") from None
    if value < 0:
        raise ValidationError("Quantity must be >= 0")
    return value


class CartService:
    def __init__(self, catalog: CatalogService, allocator: AllocationClient):
        self._catalog = catalog
        self._allocator = allocator
        self._ledger = CartLedger.empty()
        self._generation = 0
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()
        self._draft_edits: Dict[LineKey, str] = {}

    @property
    def ledger(self) -> CartLedger:
        return self._ledger

    @property
    def generation(self) -> int:
        return self._generation

    def is_allocating(self, product_id: str) -> bool:
        return product_id in self._in_flight

    def available_quantity(self, product_id: str) -> int:
        return self._catalog.available_quantity(product_id, self._ledger)

    # -- growing -----------------------------------------------------------

    def add_product(self, product_id: str, quantity: int = 1) -> CartLedger:
        """Allocate `quantity` units of a catalog product into the cart."""

        entry = self._catalog.find(product_id)
        if entry is None:
            raise ValidationError(f"Product {product_id} is not in the catalog")
        return self._allocate_into(product_id, quantity, entry.display_name)

    def _allocate_into(self, product_id: str, quantity: int, display_name: str) -> CartLedger:
        if quantity <= 0:
            raise ValidationError("Quantity to add must be positive")

        with self._lock:
            generation, available = self._claim(product_id, quantity)
        return self._run_claimed(product_id, quantity, display_name, generation, available)

    def _claim(self, product_id: str, quantity: int) -> Tuple[int, int]:
        """Mark `product_id` in flight. Caller holds the lock."""

        if product_id in self._in_flight:
            raise AllocationPendingError(product_id)
        available = self._catalog.available_quantity(product_id, self._ledger)
        if quantity > available:
            raise InsufficientStockError.for_request(product_id, quantity, available)
        self._in_flight.add(product_id)
        return self._generation, available

    def _run_claimed(
        self,
        product_id: str,
        quantity: int,
        display_name: str,
        generation: int,
        available: int,
    ) -> CartLedger:
        try:
            result = self._allocator.allocate(product_id, quantity, available=available)
        except Exception:
            with self._lock:
                self._in_flight.discard(product_id)
            raise

        with self._lock:
            self._in_flight.discard(product_id)
            if generation != self._generation:
                logger.warning(
                    "Discarding allocation of %s x %s: the bill changed while it was in flight",
                    quantity,
                    product_id,
                )
                return self._ledger
            self._ledger = self._ledger.add_allocation(product_id, result.grants, display_name=display_name)
            ledger = self._ledger

        self._catalog.refresh_quietly()
        return ledger

    # -- editing -----------------------------------------------------------

    def set_quantity(self, key: LineKey, new_quantity: int) -> CartLedger:
        """
        Set a line's quantity.

        Zero removes the line; a smaller value releases stock from the tail of
        its grants; a larger value allocates the difference for the product,
        which may land in this line or in another price tier.
        """

        if new_quantity < 0:
            raise ValidationError("Quantity must be >= 0")

        with self._lock:
            if key.product_id in self._in_flight:
                raise AllocationPendingError(key.product_id)
            line = self._ledger.require(key)
            self._draft_edits.pop(key, None)
            if new_quantity <= line.quantity:
                self._ledger, released = self._ledger.shrink(key, new_quantity)
                self._log_released(key, released)
                return self._ledger
            # Claim under the same lock as the read of line.quantity.
            delta = new_quantity - line.quantity
            generation, available = self._claim(key.product_id, delta)

        return self._run_claimed(key.product_id, delta, line.display_name, generation, available)

    def stage_quantity_text(self, key: LineKey, text: str) -> None:
        """Record in-progress input (possibly blank) without touching the ledger."""

        self._ledger.require(key)
        self._draft_edits[key] = text

    def draft_text(self, key: LineKey) -> Optional[str]:
        return self._draft_edits.get(key)

    def commit_quantity_edit(self, key: LineKey, text: Optional[str] = None) -> CartLedger:
        """
        Commit typed quantity input. A committed blank or zero removes the
        line; with no text, the staged draft is committed.
        """

        if text is None:
            text = self._draft_edits.get(key)
            if text is None:
                return self._ledger
        try:
            quantity = parse_quantity_text(text)
        except ValidationError:
            self._draft_edits.pop(key, None)
            raise
        return self.set_quantity(key, quantity)

    def remove(self, key: LineKey) -> CartLedger:
        with self._lock:
            if key.product_id in self._in_flight:
                raise AllocationPendingError(key.product_id)
            self._ledger, released = self._ledger.remove(key)
            self._draft_edits.pop(key, None)
            self._log_released(key, released)
            return self._ledger

    # -- bill switching ----------------------------------------------------

    def clear(self) -> None:
        """Empty the cart; in-flight allocations will be discarded."""
        self.load(CartLedger.empty())

    def load(self, ledger: CartLedger) -> None:
        with self._lock:
            self._generation += 1
            self._ledger = ledger
            self._draft_edits.clear()

    @staticmethod
    def _log_released(key: LineKey, released: Tuple[LotGrant, ...]) -> None:
        for grant in released:
            logger.debug(
                "Released %s x %s from lot %s at %s",
                grant.granted_quantity,
                key.product_id,
                grant.lot_code,
                grant.unit_price,
            )


__all__ = ["CartService", "parse_quantity_text"]
