"""
Domain errors surfaced by the billing screen.

Every collaborator failure is translated into one of these at the repository
boundary, so services and the API only ever deal with this hierarchy.
"""

from __future__ import annotations

from typing import Optional


class PosError(Exception):
    """Base class for user-visible billing failures."""


class InsufficientStockError(PosError):
    """Raised when an allocation or a sale cannot be satisfied from stock."""

    def __init__(
        self,
        message: str,
        *,
        product_id: Optional[str] = None,
        requested: Optional[int] = None,
        available: Optional[int] = None,
    ):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(message)

    @classmethod
    def for_request(cls, product_id: str, requested: int, available: int) -> "InsufficientStockError":
        return cls(
            f"Insufficient stock for {product_id}. Requested: {requested}, Available: {available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )


class InvalidStateError(PosError):
    """Raised when a bill is operated on in the wrong lifecycle state."""


class NetworkError(PosError):
    """Raised on transport failure. Never retried automatically."""


class ValidationError(PosError, ValueError):
    """Raised when required buyer, payment or cart input is missing or malformed."""


class AllocationPendingError(PosError):
    """Raised when an allocation for the same product is already in flight."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"An allocation for {product_id} is already in progress")


class ServiceError(PosError):
    """Raised when a collaborator rejects a request for any other reason."""


__all__ = [
    "AllocationPendingError",
    "InsufficientStockError",
    "InvalidStateError",
    "NetworkError",
    "PosError",
    "ServiceError",
    "ValidationError",
]
