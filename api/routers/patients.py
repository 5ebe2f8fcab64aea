"""
Patients API Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from api.deps import get_billing_session, http_error
from api.models import BuyerModel, CartResponse
from api.routers.cart import cart_response
from domain.errors import PosError
from services.billing_session import BillingSession

router = APIRouter()


@router.get("/patients", response_model=List[BuyerModel], summary="Search Patients")
def search_patients(
    search: str = Query("", description="Patient id, name or phone"),
    billing: BillingSession = Depends(get_billing_session),
):
    try:
        return [BuyerModel.from_domain(p) for p in billing.search_patients(search)]
    except PosError as e:
        raise http_error(e)


@router.post("/patients/select", response_model=CartResponse, summary="Attach Patient to Bill")
def select_patient(patient: BuyerModel, billing: BillingSession = Depends(get_billing_session)):
    billing.select_patient(patient.to_domain())
    return cart_response(billing)
