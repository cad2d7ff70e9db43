"""Pydantic schemas for distributions (caterer bills)."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from spice_ledger.core.enum_utils import lowercase_enum_validator
from spice_ledger.models.caterer_payment import PaymentMode
from spice_ledger.models.distribution import DistributionStatus
from spice_ledger.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== Item Schemas ====================

class DistributionItemCreate(BaseModel):
    """
    Bill line as submitted.

    amount and gst_amount are optional and only checked: the server always
    recomputes them from quantity, rate and gst_percentage.
    """
    model_config = ConfigDict(populate_by_name=True)

    spice_id: Optional[str] = Field(None, max_length=50)
    item_name: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal = Field(..., gt=0)
    unit: str = Field("kg", max_length=20)
    rate: Decimal = Field(..., ge=0)
    gst_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    amount: Optional[Decimal] = None
    gst_amount: Optional[Decimal] = None


class DistributionItemResponse(BaseResponseSchema):
    id: UUID
    spice_id: Optional[str] = None
    item_name: str
    quantity: Decimal
    unit: str
    rate: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    amount: Decimal


# ==================== Distribution Schemas ====================

class DistributionCreate(BaseCreateSchema):
    caterer_id: UUID
    bill_no: Optional[str] = Field(None, max_length=50, description="Generated when omitted")
    distribution_date: date
    due_date: Optional[date] = None
    items: List[DistributionItemCreate] = Field(..., min_length=1)
    amount_paid: Decimal = Field(Decimal("0"), ge=0, description="Paid at the time of delivery")
    payment_mode: Optional[PaymentMode] = None
    notes: Optional[str] = None
    receipt_image: Optional[str] = Field(None, max_length=500)

    _normalize_mode = lowercase_enum_validator('payment_mode', PaymentMode)


class DistributionStatusUpdate(BaseModel):
    status: DistributionStatus

    _normalize_status = lowercase_enum_validator('status', DistributionStatus)


class DistributionResponse(BaseResponseSchema):
    id: UUID
    bill_no: str
    caterer_id: UUID
    distribution_date: date
    due_date: Optional[date] = None
    total_amount: Decimal
    total_gst_amount: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str
    payment_mode: Optional[str] = None
    notes: Optional[str] = None
    receipt_image: Optional[str] = None
    version: int
    items: List[DistributionItemResponse] = []
    created_at: datetime
    updated_at: datetime


class DistributionListResponse(BaseModel):
    items: List[DistributionResponse]
    total: int
    skip: int = 0
    limit: int = 100


class BillSummaryResponse(BaseModel):
    total_bills: int
    total_amount: Decimal
    total_paid: Decimal
    total_due: Decimal
    overdue_amount: Decimal
    overdue_bills: int


class LedgerRepairResponse(BaseModel):
    checked: int
    repaired: int
    bill_numbers: List[str]
