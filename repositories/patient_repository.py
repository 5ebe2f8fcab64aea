"""
Patient repository: buyer lookup by id, name or phone.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from supabase import Client  # type: ignore[import-not-found]

from domain.buyer import BuyerInfo
from repositories.responses import call, optional_str, pick, unwrap_rows

_PATIENTS_TABLE: str = "patients"
_SEARCH_LIMIT: int = 20


def row_to_buyer(row: Mapping[str, Any]) -> BuyerInfo:
    full_name = pick(row, "full_name", "fullName")
    if not full_name:
        full_name = f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()
    return BuyerInfo(
        name=str(full_name),
        phone=str(pick(row, "phone", default="")),
        external_id=optional_str(pick(row, "patient_id", "patientId")),
        age=optional_str(row.get("age")),
        gender=optional_str(row.get("gender")),
    )


class PatientRepository:
    def __init__(self, client: Client):
        self._client = client

    def search(self, term: str) -> List[BuyerInfo]:
        # PostgREST or-filters are comma separated; keep the term from splitting them.
        safe = term.replace(",", " ").replace("(", " ").replace(")", " ").strip()
        pattern = f"%{safe}%"
        data = call(
            "Search patients",
            lambda: (
                self._client.table(_PATIENTS_TABLE)
                .select("patient_id, full_name, first_name, last_name, phone, age, gender")
                .or_(f"patient_id.ilike.{pattern},full_name.ilike.{pattern},phone.ilike.{pattern}")
                .limit(_SEARCH_LIMIT)
                .execute()
            ),
        )
        return [row_to_buyer(row) for row in unwrap_rows(data, "results")]


__all__ = ["PatientRepository", "row_to_buyer"]
