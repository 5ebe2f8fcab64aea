"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Money totals are presented rounded to two decimals. Unit prices are shown
exactly, since they address cart lines.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.bill import BillRecord
from domain.buyer import BuyerInfo
from domain.cart import CartLine
from domain.catalog import CatalogEntry
from domain.money import round_money
from domain.settlement import DiscountMode, Settlement


# ============================================================================
# Catalog Models
# ============================================================================

class CatalogEntryResponse(BaseModel):
    """One sellable lot, with cart-aware availability."""
    product_id: str
    display_name: str
    lot_code: str
    unit_price: Decimal
    remaining_quantity: int
    available_quantity: int
    unit_of_measure: Optional[str] = None
    expiry_date: Optional[date] = None
    barcode: str = ""

    @classmethod
    def from_domain(cls, entry: CatalogEntry, available: int) -> "CatalogEntryResponse":
        return cls(
            product_id=entry.product_id,
            display_name=entry.display_name,
            lot_code=entry.lot_code,
            unit_price=entry.unit_price,
            remaining_quantity=entry.remaining_quantity,
            available_quantity=available,
            unit_of_measure=entry.unit_of_measure,
            expiry_date=entry.expiry_date,
            barcode=entry.barcode,
        )


class CatalogListResponse(BaseModel):
    items: List[CatalogEntryResponse]
    total_count: int


# ============================================================================
# Cart Models
# ============================================================================

class LotGrantModel(BaseModel):
    lot_code: str
    lot_id: Optional[str] = None
    granted_quantity: int
    unit_price: Decimal


class CartLineModel(BaseModel):
    product_id: str
    display_name: str
    unit_price: Decimal
    quantity: int
    amount: Decimal
    lot_grants: List[LotGrantModel]

    @classmethod
    def from_domain(cls, line: CartLine) -> "CartLineModel":
        return cls(
            product_id=line.product_id,
            display_name=line.display_name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            amount=round_money(line.amount),
            lot_grants=[
                LotGrantModel(
                    lot_code=grant.lot_code,
                    lot_id=grant.lot_id,
                    granted_quantity=grant.granted_quantity,
                    unit_price=grant.unit_price,
                )
                for grant in line.lot_grants
            ],
        )


class SettlementModel(BaseModel):
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    paid_amount: Optional[Decimal] = None
    credit_amount: Decimal
    change_amount: Decimal

    @classmethod
    def from_domain(cls, settlement: Settlement) -> "SettlementModel":
        shown = settlement.rounded()
        return cls(
            subtotal=shown.subtotal,
            tax_amount=shown.tax_amount,
            discount_amount=shown.discount_amount,
            total=shown.total,
            paid_amount=shown.paid_amount,
            credit_amount=shown.credit_amount,
            change_amount=shown.change_amount,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "subtotal": "100.00",
                "tax_amount": "13.00",
                "discount_amount": "11.30",
                "total": "101.70",
                "paid_amount": "100.00",
                "credit_amount": "1.70",
                "change_amount": "0.00"
            }
        }


class BuyerModel(BaseModel):
    name: str = ""
    phone: str = ""
    external_id: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)

    @classmethod
    def from_domain(cls, buyer: BuyerInfo) -> "BuyerModel":
        return cls(
            name=buyer.name,
            phone=buyer.phone,
            external_id=buyer.external_id,
            age=buyer.age,
            gender=buyer.gender,
            discount_percent=buyer.discount_percent,
        )

    def to_domain(self) -> BuyerInfo:
        return BuyerInfo(
            name=self.name,
            phone=self.phone,
            external_id=self.external_id,
            age=self.age,
            gender=self.gender,
            discount_percent=self.discount_percent,
        )


class CartResponse(BaseModel):
    lines: List[CartLineModel]
    settlement: SettlementModel
    buyer: BuyerModel
    discount_mode: DiscountMode
    payment_method: str
    editing_id: Optional[str] = None


class AddItemRequest(BaseModel):
    """Request to allocate stock of a product into the cart."""
    product_id: str
    quantity: int = Field(1, ge=1, description="Units to allocate")

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "med-paracetamol-500",
                "quantity": 3
            }
        }


class SetQuantityRequest(BaseModel):
    """Committed quantity input for a line. Blank or zero removes the line."""
    quantity: str = Field(..., description="Committed input text, e.g. '5' or ''")


class PaymentRequest(BaseModel):
    payment_method: Optional[str] = None
    paid_amount: Optional[str] = Field(None, description="Amount tendered; blank clears it")
    discount_mode: Optional[DiscountMode] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)


# ============================================================================
# Bill Models
# ============================================================================

class BillResponse(BaseModel):
    id: str
    sale_number: Optional[str] = None
    status: str
    buyer: BuyerModel
    lines: List[CartLineModel]
    settlement: SettlementModel
    payment_method: str
    created_at: datetime

    @classmethod
    def from_domain(cls, bill: BillRecord) -> "BillResponse":
        return cls(
            id=bill.id,
            sale_number=bill.sale_number,
            status=bill.status.value,
            buyer=BuyerModel.from_domain(bill.buyer),
            lines=[CartLineModel.from_domain(line) for line in bill.lines],
            settlement=SettlementModel.from_domain(bill.settlement),
            payment_method=bill.payment_method,
            created_at=bill.created_at,
        )


class FinalizeResponse(BaseModel):
    bill: BillResponse
    receipt: Optional[Dict[str, Any]] = None
    message: str


class BillListResponse(BaseModel):
    bills: List[BillResponse]
    page: int
    total_pages: int
    total_count: int


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
