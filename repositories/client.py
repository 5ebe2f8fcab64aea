"""
Supabase client initialization.

This module contains *only* the connection setup. The client is created on
first use, so importing repositories (or running the unit tests) never needs
credentials.

Environment variables:
- SUPABASE_URL: Supabase project URL (required)
- SUPABASE_KEY: Supabase API key (required)
- POS_BRANCH_ID: branch this terminal bills for (optional)
- POS_USER_ID: cashier user id (optional)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from supabase import Client, create_client  # type: ignore[import-not-found]

from domain.session import SessionContext

# Look for .env in the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Return the process-wide Supabase client, creating it on first call."""

    url = _require_env("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL.")
    key = _require_env("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key.")
    return create_client(url, key)


def session_from_env() -> SessionContext:
    """Build the terminal's SessionContext from POS_BRANCH_ID / POS_USER_ID."""

    return SessionContext(
        branch_id=os.getenv("POS_BRANCH_ID") or None,
        user_id=os.getenv("POS_USER_ID") or None,
    )


__all__ = ["get_supabase_client", "session_from_env"]
