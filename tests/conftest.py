"""
Pytest configuration and in-memory collaborators.

Adds the project root to the Python path so tests can import domain,
repositories and services, and provides fake gateways that stand in for the
allocation, catalog, sale and patient services.
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.bill import BillRecord, BillStatus  # noqa: E402
from domain.buyer import BuyerInfo  # noqa: E402
from domain.cart import LotGrant  # noqa: E402
from domain.catalog import CatalogEntry  # noqa: E402
from domain.errors import InsufficientStockError, InvalidStateError  # noqa: E402
from domain.session import SessionContext  # noqa: E402
from repositories.sale_repository import SaleAck, row_to_bill  # noqa: E402
from repositories.settings_repository import PosSettings  # noqa: E402
from services.allocation_service import AllocationClient  # noqa: E402
from services.bill_service import BillLifecycleManager  # noqa: E402
from services.billing_session import BillingSession  # noqa: E402
from services.cart_service import CartService  # noqa: E402
from services.catalog_service import CatalogService  # noqa: E402
from services.patient_service import PatientResolver  # noqa: E402


def entry(product_id: str, price: str, remaining: int, lot: str = "LOT-1", name: str = "") -> CatalogEntry:
    return CatalogEntry(
        product_id=product_id,
        display_name=name or product_id.title(),
        lot_code=lot,
        unit_price=Decimal(price),
        remaining_quantity=remaining,
    )


def grant(lot: str, quantity: int, price: str) -> LotGrant:
    return LotGrant(lot_code=lot, granted_quantity=quantity, unit_price=Decimal(price), lot_id=f"id-{lot}")


class FakeCatalogGateway:
    def __init__(self, entries: List[CatalogEntry]):
        self.entries = list(entries)
        self.calls = 0

    def list_entries(self, branch_id: Optional[str]) -> List[CatalogEntry]:
        self.calls += 1
        return list(self.entries)


class FakeAllocationGateway:
    """Serves queued responses; each response is a list of grants or an exception."""

    def __init__(self):
        self.responses: List[Any] = []
        self.calls: List[tuple] = []
        self.on_call = None

    def queue(self, *grants: LotGrant) -> None:
        self.responses.append(list(grants))

    def fail(self, exc: Exception) -> None:
        self.responses.append(exc)

    def allocate(self, product_id: str, quantity: int, branch_id: Optional[str]) -> List[LotGrant]:
        self.calls.append((product_id, quantity, branch_id))
        if self.on_call is not None:
            self.on_call(product_id, quantity)
        if not self.responses:
            raise InsufficientStockError("No stock queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSaleGateway:
    """Keeps bill rows in memory, the way the sale service stores them."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_next: Optional[Exception] = None
        self._seq = 0

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    def _store(self, bill_id: str, payload: Dict[str, Any], status: str) -> SaleAck:
        row = dict(payload, id=bill_id, status=status, sale_number=f"S-{bill_id}",
                   created_at="2025-01-01T00:00:00Z")
        self.rows[bill_id] = row
        return SaleAck(bill_id=bill_id, sale_number=row["sale_number"],
                       receipt={"sale_number": row["sale_number"]} if status == "completed" else None)

    def _next_id(self) -> str:
        self._seq += 1
        return f"B{self._seq}"

    def create_sale(self, payload):
        self.calls.append(("create_sale", payload))
        self._maybe_fail()
        return self._store(self._next_id(), payload, "completed")

    def save_pending(self, payload):
        self.calls.append(("save_pending", payload))
        self._maybe_fail()
        return self._store(self._next_id(), payload, "pending")

    def update_pending(self, bill_id, payload):
        self.calls.append(("update_pending", bill_id, payload))
        self._maybe_fail()
        if self.rows[bill_id]["status"] != "pending":
            raise InvalidStateError("Sale already completed")
        return self._store(bill_id, payload, "pending")

    def complete_pending(self, bill_id, payload):
        self.calls.append(("complete_pending", bill_id, payload))
        self._maybe_fail()
        return self._store(bill_id, payload, "completed")

    def delete_sale(self, bill_id, *, restore_stock=False):
        self.calls.append(("delete_sale", bill_id, restore_stock))
        self._maybe_fail()
        self.rows.pop(bill_id, None)

    def get_sale(self, bill_id) -> Optional[BillRecord]:
        row = self.rows.get(bill_id)
        return row_to_bill(row) if row is not None else None

    def list_sales(self, branch_id, status: Optional[BillStatus] = None) -> List[BillRecord]:
        bills = [row_to_bill(row) for row in self.rows.values()]
        return [b for b in bills if status is None or b.status is status]

    def receipt(self, bill_id):
        return {"sale_number": self.rows[bill_id]["sale_number"]}


class FakePatientGateway:
    def __init__(self, patients: List[BuyerInfo]):
        self.patients = patients
        self.terms: List[str] = []

    def search(self, term: str) -> List[BuyerInfo]:
        self.terms.append(term)
        return [p for p in self.patients if term.lower() in p.name.lower() or term in p.phone]


SESSION = SessionContext(branch_id="BR-1", user_id="cashier-1")
CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def session() -> SessionContext:
    return SESSION


@pytest.fixture
def catalog_gateway() -> FakeCatalogGateway:
    return FakeCatalogGateway([
        entry("amox", "10", 30, lot="A1", name="Amoxicillin 500mg"),
        entry("amox", "12", 30, lot="A2", name="Amoxicillin 500mg"),
        entry("para", "2.50", 100, lot="P1", name="Paracetamol 500mg"),
    ])


@pytest.fixture
def catalog(catalog_gateway, session) -> CatalogService:
    service = CatalogService(catalog_gateway, session)
    service.refresh()
    return service


@pytest.fixture
def allocation_gateway() -> FakeAllocationGateway:
    return FakeAllocationGateway()


@pytest.fixture
def cart(catalog, allocation_gateway, session) -> CartService:
    return CartService(catalog, AllocationClient(allocation_gateway, session))


@pytest.fixture
def sale_gateway() -> FakeSaleGateway:
    return FakeSaleGateway()


@pytest.fixture
def bills(sale_gateway, session, catalog) -> BillLifecycleManager:
    return BillLifecycleManager(sale_gateway, session, catalog=catalog)


@pytest.fixture
def patient_gateway() -> FakePatientGateway:
    return FakePatientGateway([
        BuyerInfo(name="Sita Sharma", phone="9800000001", external_id="P-001", age="34", gender="female"),
    ])


@pytest.fixture
def billing(session, catalog, cart, bills, patient_gateway) -> BillingSession:
    return BillingSession(
        session,
        catalog=catalog,
        cart=cart,
        bills=bills,
        patients=PatientResolver(patient_gateway),
        settings=PosSettings(tax_rate=Decimal("13"), tax_inclusive=True),
    )
