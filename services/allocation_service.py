"""
Allocation client: reserves lot-level stock for a product.

Key features:
- Local pre-check against the cart-aware availability, so an over-request is
  rejected before any network call.
- All-or-nothing from the caller's view: a short grant is treated as a
  rejection even if the service touched several lots.
- The service stays the source of truth and may still reject.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from domain.cart import LotGrant
from domain.errors import InsufficientStockError, ServiceError, ValidationError
from domain.session import SessionContext

logger = logging.getLogger(__name__)


class AllocationGateway(Protocol):
    def allocate(self, product_id: str, quantity: int, branch_id: Optional[str]) -> List[LotGrant]: ...


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """Grants issued for one allocation request."""

    product_id: str
    requested_quantity: int
    grants: Tuple[LotGrant, ...]

    @property
    def allocated_quantity(self) -> int:
        return sum(grant.granted_quantity for grant in self.grants)

    @property
    def price_tiers(self) -> List[str]:
        return sorted({str(grant.unit_price) for grant in self.grants})


class AllocationClient:
    def __init__(self, gateway: AllocationGateway, session: SessionContext):
        self._gateway = gateway
        self._session = session

    def allocate(self, product_id: str, requested_quantity: int, *, available: Optional[int] = None) -> AllocationResult:
        """
        Reserve `requested_quantity` units of a product.

        Args:
            product_id: product to allocate
            requested_quantity: units wanted (positive)
            available: cart-aware availability; when given, requests above it
                are rejected locally without calling the service

        Raises:
            ValidationError: non-positive quantity
            InsufficientStockError: local pre-check failed, the service
                rejected the request, or the service granted less
            NetworkError: transport failure
        """

        if requested_quantity <= 0:
            raise ValidationError("Quantity to allocate must be positive")
        if available is not None and requested_quantity > available:
            raise InsufficientStockError.for_request(product_id, requested_quantity, available)

        grants = tuple(self._gateway.allocate(product_id, requested_quantity, self._session.branch_id))
        result = AllocationResult(product_id=product_id, requested_quantity=requested_quantity, grants=grants)

        if result.allocated_quantity < requested_quantity:
            raise InsufficientStockError.for_request(product_id, requested_quantity, result.allocated_quantity)
        if result.allocated_quantity > requested_quantity:
            raise ServiceError(
                f"Allocation for {product_id} granted {result.allocated_quantity}, "
                f"requested {requested_quantity}"
            )

        logger.info(
            "Allocated %s x %s across %d lot(s) at %s",
            requested_quantity,
            product_id,
            len(grants),
            ", ".join(result.price_tiers),
        )
        return result


__all__ = ["AllocationClient", "AllocationGateway", "AllocationResult"]
