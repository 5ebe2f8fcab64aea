"""
Response normalisation for Supabase calls.

The backend is not consistent about shapes: RPCs return either a JSON object
or a one-element list, list endpoints are sometimes wrapped in
``{"results": [...]}`` or ``{"allocations": [...]}``, and errors arrive either
as raised ``APIError`` or as an ``{"error": ...}`` body. Everything is folded
into plain rows here so nothing above the repository layer branches on shape.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Type

import httpx
from postgrest.exceptions import APIError

from domain.errors import (
    InsufficientStockError,
    InvalidStateError,
    NetworkError,
    PosError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_ERROR_CODES: Dict[str, Type[PosError]] = {
    "insufficient_stock": InsufficientStockError,
    "invalid_state": InvalidStateError,
    "validation": ValidationError,
}


def pick(row: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First present, non-null value among snake_case / camelCase spellings."""

    for name in names:
        value = row.get(name)
        if value is not None:
            return value
    return default


def error_from_body(body: Mapping[str, Any], *, fallback: Type[PosError] = ServiceError) -> PosError:
    """Translate an ``{"error": ..., "code": ...}`` body into a domain error."""

    message = str(pick(body, "error", "message", "detail", default="Request failed"))
    code = str(body.get("code") or "").lower()
    if code in _ERROR_CODES:
        return _ERROR_CODES[code](message)
    if "stock" in message.lower():
        return InsufficientStockError(message)
    return fallback(message)


def _api_error_body(exc: APIError) -> Dict[str, Any]:
    try:
        body = exc.json() if callable(getattr(exc, "json", None)) else {}
    except (TypeError, ValueError):
        body = {}
    if not isinstance(body, dict):
        body = {}
    if not body.get("error"):
        body["error"] = getattr(exc, "message", None) or str(exc)
    return body


@contextmanager
def translate_errors(action: str, *, fallback: Type[PosError] = ServiceError) -> Iterator[None]:
    """
    Run a Supabase call, mapping library exceptions onto domain errors.

    Transport failures become NetworkError; API rejections become the domain
    kind named by their body.
    """

    try:
        yield
    except PosError:
        raise
    except httpx.TransportError as exc:
        logger.warning("%s failed: network error: %s", action, exc)
        raise NetworkError(f"{action} failed: {exc}") from exc
    except APIError as exc:
        raise error_from_body(_api_error_body(exc), fallback=fallback) from exc


def check_response(response: Any, action: str, *, fallback: Type[PosError] = ServiceError) -> Any:
    """Return ``response.data``, raising for error attributes or error bodies."""

    error = getattr(response, "error", None)
    if error:
        raise fallback(f"{action} failed: {error}")
    data = getattr(response, "data", None)
    if isinstance(data, Mapping) and data.get("error"):
        raise error_from_body(data, fallback=fallback)
    return data


def unwrap_rows(data: Any, *keys: str) -> List[Mapping[str, Any]]:
    """Accept a bare list, a list wrapped under one of `keys`, or nothing."""

    if data is None:
        return []
    if isinstance(data, Mapping):
        for key in keys:
            if key in data:
                return unwrap_rows(data[key])
        return [data]
    if isinstance(data, list):
        return [row for row in data if isinstance(row, Mapping)]
    raise ServiceError(f"Unexpected response shape: {type(data).__name__}")


def unwrap_object(data: Any) -> Dict[str, Any]:
    """Accept an object or a one-element list of objects."""

    if isinstance(data, list):
        data = data[0] if data else None
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ServiceError(f"Unexpected response shape: {type(data).__name__}")
    return dict(data)


def call(action: str, run: Callable[[], Any], *, fallback: Type[PosError] = ServiceError) -> Any:
    """Execute `run` under `translate_errors` and return checked response data."""

    with translate_errors(action, fallback=fallback):
        response = run()
    return check_response(response, action, fallback=fallback)


def optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


__all__ = [
    "call",
    "check_response",
    "error_from_body",
    "optional_str",
    "pick",
    "translate_errors",
    "unwrap_object",
    "unwrap_rows",
]
