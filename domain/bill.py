"""
Domain: Bill records.

Lifecycle:
- editing is transient screen state and is never persisted.
- pending: saved but not finalized; may be updated, resumed, completed once,
  or deleted.
- completed: terminal. Only administrative deletion is allowed, and that must
  reverse the stock decrement on the server.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .buyer import BuyerInfo
from .cart import CartLedger, CartLine
from .errors import InvalidStateError
from .settlement import Settlement
from .time import require_utc_timestamp


class BillStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class BillRecord:
    """Immutable snapshot of a saved or completed bill."""

    id: str
    status: BillStatus
    buyer: BuyerInfo
    lines: Tuple[CartLine, ...]
    settlement: Settlement
    payment_method: str
    created_at: datetime
    sale_number: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @property
    def is_pending(self) -> bool:
        return self.status is BillStatus.PENDING

    @property
    def label(self) -> str:
        return self.sale_number or self.id

    def ledger(self) -> CartLedger:
        """Rebuild an editable ledger from the saved lines."""
        return CartLedger.from_lines(self.lines)

    def completed(self) -> "BillRecord":
        """Return a new record marked completed. A bill completes exactly once."""

        if self.status is not BillStatus.PENDING:
            raise InvalidStateError(f"Bill {self.label} is already {self.status.value}")
        return replace(self, status=BillStatus.COMPLETED)

    def matches(self, term: str) -> bool:
        needle = term.strip().lower()
        if not needle:
            return True
        return (
            needle in self.buyer.display_name.lower()
            or needle in self.id.lower()
            or (self.sale_number is not None and needle in self.sale_number.lower())
            or term.strip() in self.buyer.phone
        )


__all__ = ["BillRecord", "BillStatus"]
