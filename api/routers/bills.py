"""
Bills API Endpoints.

Endpoints for saving, resuming, finalizing and deleting bills, and for the
bill history.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from api.deps import get_billing_session, http_error
from api.models import BillListResponse, BillResponse, CartResponse, FinalizeResponse
from api.routers.cart import cart_response
from domain.errors import PosError
from services.billing_session import BillingSession

router = APIRouter()


@router.get("/bills", response_model=BillListResponse, summary="Bill History")
def list_bills(
    search: str = Query("", description="Buyer name, bill id or phone"),
    status: str = Query("all", description="all, pending or completed"),
    page: int = Query(1, ge=1),
    refresh: bool = Query(True, description="Refetch bills from the sale service"),
    billing: BillingSession = Depends(get_billing_session),
):
    try:
        if refresh:
            billing.bills.refresh()
        result = billing.bill_history(search, status, page)
        return BillListResponse(
            bills=[BillResponse.from_domain(bill) for bill in result.bills],
            page=result.page,
            total_pages=result.total_pages,
            total_count=result.total_count,
        )
    except PosError as e:
        raise http_error(e)


@router.post(
    "/bills/draft",
    response_model=BillResponse,
    summary="Save Pending Bill",
    description="Save the cart as a pending bill, or update the pending bill being edited."
)
def save_draft(billing: BillingSession = Depends(get_billing_session)):
    try:
        return BillResponse.from_domain(billing.save_draft())
    except PosError as e:
        raise http_error(e)


@router.post("/bills/{bill_id}/resume", response_model=CartResponse, summary="Resume Pending Bill")
def resume_bill(bill_id: str, billing: BillingSession = Depends(get_billing_session)):
    try:
        billing.resume(bill_id)
        return cart_response(billing)
    except PosError as e:
        raise http_error(e)


@router.post(
    "/bills/finalize",
    response_model=FinalizeResponse,
    summary="Finalize Sale",
    description="Commit the sale; stock is re-validated and decremented by the sale service."
)
def finalize_bill(billing: BillingSession = Depends(get_billing_session)):
    """
    Complete the bill on screen.

    On failure (e.g. stock changed since allocation) the cart is kept as-is so
    nothing entered is lost.
    """
    try:
        sale = billing.finalize()
        return FinalizeResponse(
            bill=BillResponse.from_domain(sale.bill),
            receipt=sale.receipt,
            message=sale.message,
        )
    except PosError as e:
        raise http_error(e)


@router.delete("/bills/{bill_id}", status_code=204, summary="Delete Bill")
def delete_bill(bill_id: str, billing: BillingSession = Depends(get_billing_session)):
    """Delete a bill. Completed bills have their stock restored first."""
    try:
        billing.delete_bill(bill_id)
    except PosError as e:
        raise http_error(e)


@router.get("/bills/{bill_id}/receipt", summary="Bill Receipt")
def get_receipt(bill_id: str, billing: BillingSession = Depends(get_billing_session)) -> Dict[str, Any]:
    try:
        return billing.bills.receipt(bill_id)
    except PosError as e:
        raise http_error(e)
