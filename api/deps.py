"""
Shared dependencies for the API routers.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from domain.errors import (
    AllocationPendingError,
    InsufficientStockError,
    InvalidStateError,
    NetworkError,
    PosError,
    ValidationError,
)
from repositories.client import get_supabase_client, session_from_env
from services.billing_session import BillingSession, create_billing_session

_STATUS_CODES = (
    (ValidationError, 422),
    (InsufficientStockError, 409),
    (InvalidStateError, 409),
    (AllocationPendingError, 409),
    (NetworkError, 502),
)


@lru_cache(maxsize=1)
def get_billing_session() -> BillingSession:
    """One billing screen per terminal process."""
    return create_billing_session(get_supabase_client(), session_from_env())


def http_error(exc: Exception) -> HTTPException:
    """Map a billing failure onto an HTTP error, keeping its message verbatim."""

    if isinstance(exc, KeyError):
        return HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found")
    if isinstance(exc, PosError):
        for kind, status_code in _STATUS_CODES:
            if isinstance(exc, kind):
                return HTTPException(status_code=status_code, detail=str(exc))
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
