"""
Patient resolver: finds a registered buyer to attach to the bill.
"""

from __future__ import annotations

from typing import List, Protocol

from domain.buyer import BuyerInfo


class PatientGateway(Protocol):
    def search(self, term: str) -> List[BuyerInfo]: ...


class PatientResolver:
    def __init__(self, gateway: PatientGateway):
        self._gateway = gateway

    def search(self, term: str) -> List[BuyerInfo]:
        """Look up patients by id, name or phone. A blank term finds nobody."""

        if not term or not term.strip():
            return []
        return self._gateway.search(term.strip())


__all__ = ["PatientGateway", "PatientResolver"]
