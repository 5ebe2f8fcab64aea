"""
Domain: the signed-in cashier's context.

Passed explicitly into services instead of being read from process-wide
storage, so every collaborator call is scoped to one branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Who is billing, and for which branch."""

    branch_id: Optional[str]
    user_id: Optional[str] = None
    access_token: Optional[str] = None


__all__ = ["SessionContext"]
