"""
Catalog service: keeps the branch's catalog snapshot current.

The snapshot is an optimistic, eventually consistent view of server stock. It
is refetched after every allocation, sale completion and sale deletion.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from domain.cart import CartLedger
from domain.catalog import CatalogEntry, CatalogSnapshot
from domain.errors import PosError
from domain.session import SessionContext

logger = logging.getLogger(__name__)


class CatalogGateway(Protocol):
    def list_entries(self, branch_id: Optional[str]) -> List[CatalogEntry]: ...


class CatalogService:
    """Read-only catalog for the active branch."""

    def __init__(self, gateway: CatalogGateway, session: SessionContext):
        self._gateway = gateway
        self._session = session
        self._snapshot = CatalogSnapshot()

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def refresh(self) -> CatalogSnapshot:
        """Refetch the catalog. Raises on failure and keeps the previous snapshot."""

        entries = self._gateway.list_entries(self._session.branch_id)
        self._snapshot = CatalogSnapshot.of(entries)
        return self._snapshot

    def refresh_quietly(self) -> CatalogSnapshot:
        """Refetch, keeping the stale snapshot if the catalog cannot be reached."""

        try:
            return self.refresh()
        except PosError as exc:
            logger.warning("Catalog refresh failed for branch %s: %s", self._session.branch_id, exc)
            return self._snapshot

    def list(self) -> List[CatalogEntry]:
        return self._snapshot.list()

    def search(self, term: str) -> List[CatalogEntry]:
        return self._snapshot.search(term)

    def find(self, product_id: str) -> Optional[CatalogEntry]:
        return self._snapshot.find(product_id)

    def available_quantity(self, product_id: str, ledger: CartLedger) -> int:
        return self._snapshot.available_quantity(product_id, ledger)


__all__ = ["CatalogGateway", "CatalogService"]
