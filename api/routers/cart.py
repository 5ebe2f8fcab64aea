"""
Cart API Endpoints.

Endpoints for browsing the branch catalog and editing the bill on screen.
"""

from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_billing_session, http_error
from api.models import (
    AddItemRequest,
    BuyerModel,
    CartLineModel,
    CartResponse,
    CatalogEntryResponse,
    CatalogListResponse,
    PaymentRequest,
    SetQuantityRequest,
    SettlementModel,
)
from domain.cart import LineKey
from domain.errors import PosError
from domain.settlement import DiscountMode
from services.billing_session import BillingSession

router = APIRouter()


def cart_response(billing: BillingSession) -> CartResponse:
    return CartResponse(
        lines=[CartLineModel.from_domain(line) for line in billing.ledger],
        settlement=SettlementModel.from_domain(billing.settlement()),
        buyer=BuyerModel.from_domain(billing.buyer),
        discount_mode=billing.discount_mode,
        payment_method=billing.payment_method,
        editing_id=billing.editing_id,
    )


def _line_key(product_id: str, unit_price: str) -> LineKey:
    try:
        return LineKey(product_id, Decimal(unit_price))
    except InvalidOperation:
        raise HTTPException(status_code=400, detail=f"Invalid unit price: {unit_price!r}")


@router.get(
    "/catalog",
    response_model=CatalogListResponse,
    summary="Search Catalog",
    description="Sellable lots for the branch, matched by name, barcode or lot code."
)
def search_catalog(
    search: str = Query("", description="Name, barcode or lot code"),
    refresh: bool = Query(False, description="Refetch the catalog before searching"),
    billing: BillingSession = Depends(get_billing_session),
):
    """
    Search the catalog snapshot.

    `available_quantity` is the branch stock minus what the cart already holds
    for the product, across all its price tiers.
    """
    try:
        if refresh:
            billing.catalog.refresh()
        entries = billing.search_catalog(search)
        items = [
            CatalogEntryResponse.from_domain(entry, billing.cart.available_quantity(entry.product_id))
            for entry in entries
        ]
        return CatalogListResponse(items=items, total_count=len(items))
    except PosError as e:
        raise http_error(e)


@router.get("/cart", response_model=CartResponse, summary="Current Cart")
def get_cart(billing: BillingSession = Depends(get_billing_session)):
    return cart_response(billing)


@router.post(
    "/cart/items",
    response_model=CartResponse,
    summary="Add Product",
    description="Allocate stock of a product into the cart. Lots at different prices become separate lines."
)
def add_item(request: AddItemRequest, billing: BillingSession = Depends(get_billing_session)):
    """
    Add units of a product to the cart.

    **Failure responses:**
    - 409 when the request exceeds available stock (checked before calling
      the allocation service) or the service rejects it
    - 409 when an allocation for the same product is still in flight
    - 502 when the allocation service is unreachable
    """
    try:
        billing.add_product(request.product_id, request.quantity)
        return cart_response(billing)
    except PosError as e:
        raise http_error(e)


@router.put(
    "/cart/lines/{product_id}/{unit_price}",
    response_model=CartResponse,
    summary="Set Line Quantity"
)
def set_line_quantity(
    product_id: str,
    unit_price: str,
    request: SetQuantityRequest,
    billing: BillingSession = Depends(get_billing_session),
):
    """
    Commit a quantity edit. Increases allocate the difference for the product
    (which may land in another price tier); decreases release stock locally.
    """
    key = _line_key(product_id, unit_price)
    try:
        billing.cart.commit_quantity_edit(key, request.quantity)
        return cart_response(billing)
    except (PosError, KeyError) as e:
        raise http_error(e)


@router.delete("/cart/lines/{product_id}/{unit_price}", response_model=CartResponse, summary="Remove Line")
def remove_line(product_id: str, unit_price: str, billing: BillingSession = Depends(get_billing_session)):
    key = _line_key(product_id, unit_price)
    try:
        billing.remove_line(key)
        return cart_response(billing)
    except (PosError, KeyError) as e:
        raise http_error(e)


@router.put("/cart/buyer", response_model=CartResponse, summary="Set Buyer")
def set_buyer(buyer: BuyerModel, billing: BillingSession = Depends(get_billing_session)):
    try:
        billing.set_buyer(buyer.to_domain())
        return cart_response(billing)
    except PosError as e:
        raise http_error(e)


@router.put("/cart/payment", response_model=CartResponse, summary="Set Payment and Discount")
def set_payment(request: PaymentRequest, billing: BillingSession = Depends(get_billing_session)):
    """
    Update payment method, amount tendered and discount.

    Percent and flat-amount discounts are mutually exclusive; switching mode
    replaces the other.
    """
    try:
        if request.payment_method is not None:
            billing.set_payment_method(request.payment_method)
        if request.paid_amount is not None:
            billing.set_paid_amount_text(request.paid_amount)
        if request.discount_mode is not None or request.discount_value is not None:
            mode: DiscountMode = request.discount_mode or billing.discount_mode
            value = request.discount_value if request.discount_value is not None else Decimal("0")
            billing.set_discount(mode, value)
        return cart_response(billing)
    except PosError as e:
        raise http_error(e)


@router.get("/cart/settlement", response_model=SettlementModel, summary="Settlement Preview")
def get_settlement(billing: BillingSession = Depends(get_billing_session)):
    return SettlementModel.from_domain(billing.settlement())


@router.post("/cart/clear", response_model=CartResponse, summary="Clear Bill")
def clear_cart(billing: BillingSession = Depends(get_billing_session)):
    billing.clear()
    return cart_response(billing)
