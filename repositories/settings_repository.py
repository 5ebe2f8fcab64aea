"""
POS settings repository.

Per-branch billing configuration. Defaults apply whenever the settings row is
missing or cannot be fetched; billing is never blocked on settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from supabase import Client  # type: ignore[import-not-found]

from domain.errors import PosError
from domain.money import to_decimal
from domain.settlement import TaxConfig
from repositories.responses import call, unwrap_rows

logger = logging.getLogger(__name__)

_SETTINGS_TABLE: str = "pos_settings"

DEFAULT_TAX_RATE = Decimal("13")
DEFAULT_PAYMENT_METHODS: Tuple[str, ...] = ("cash", "online")


@dataclass(frozen=True, slots=True)
class PosSettings:
    """Billing configuration for one branch."""

    tax_rate: Decimal = DEFAULT_TAX_RATE
    tax_inclusive: bool = False
    payment_methods: Tuple[str, ...] = DEFAULT_PAYMENT_METHODS
    business: Dict[str, Any] = field(default_factory=dict)  # receipt header/footer, opaque here

    @property
    def tax(self) -> TaxConfig:
        # The branch flag switches tax on; a zero rate means no tax either way.
        return TaxConfig(rate=self.tax_rate, enabled=self.tax_rate > 0 and self.tax_inclusive)


def row_to_settings(row: Mapping[str, Any]) -> PosSettings:
    methods = row.get("payment_methods") or DEFAULT_PAYMENT_METHODS
    rate = row.get("tax_rate")
    return PosSettings(
        tax_rate=to_decimal(rate, name="tax_rate") if rate not in (None, "", 0) else DEFAULT_TAX_RATE,
        tax_inclusive=bool(row.get("tax_inclusive") or False),
        payment_methods=tuple(str(m) for m in methods),
        business={
            key: row.get(key)
            for key in (
                "business_name",
                "business_address",
                "business_phone",
                "business_email",
                "receipt_footer",
                "receipt_logo",
            )
        },
    )


class SettingsRepository:
    def __init__(self, client: Client):
        self._client = client

    def get_settings(self, branch_id: Optional[str]) -> PosSettings:
        def run():
            query = self._client.table(_SETTINGS_TABLE).select("*")
            if branch_id:
                query = query.eq("branch_id", branch_id)
            return query.limit(1).execute()

        try:
            rows = unwrap_rows(call("Fetch POS settings", run))
        except PosError as exc:
            logger.warning("Using default POS settings for branch %s: %s", branch_id, exc)
            return PosSettings()

        if not rows:
            logger.warning("No POS settings for branch %s; using defaults", branch_id)
            return PosSettings()
        return row_to_settings(rows[0])


__all__ = ["DEFAULT_PAYMENT_METHODS", "DEFAULT_TAX_RATE", "PosSettings", "SettingsRepository", "row_to_settings"]
