"""Pydantic schemas for caterer payments."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from spice_ledger.core.enum_utils import lowercase_enum_validator
from spice_ledger.models.caterer_payment import PaymentMode
from spice_ledger.schemas.base import BaseResponseSchema, BaseCreateSchema


class CatererPaymentCreate(BaseCreateSchema):
    """
    A payment against one bill (distribution_id set) or a caterer-level
    payment (distribution_id omitted).
    """
    caterer_id: Optional[UUID] = None
    distribution_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None
    payment_mode: PaymentMode = PaymentMode.CASH
    reference_no: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receipt_image: Optional[str] = Field(None, max_length=500)
    expected_balance_due: Optional[Decimal] = Field(
        None,
        description="Balance the client last saw; the payment is refused if it has changed",
    )

    _normalize_mode = lowercase_enum_validator('payment_mode', PaymentMode)


class CatererPaymentResponse(BaseResponseSchema):
    id: UUID
    caterer_id: UUID
    distribution_id: Optional[UUID] = None
    amount: Decimal
    payment_date: date
    payment_mode: str
    reference_no: Optional[str] = None
    notes: Optional[str] = None
    receipt_image: Optional[str] = None
    created_at: datetime


class LedgerSnapshot(BaseModel):
    distribution_id: UUID
    bill_no: str
    grand_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: str


class PaymentRecordedResponse(BaseModel):
    payment: CatererPaymentResponse
    ledger: Optional[LedgerSnapshot] = None
    message: str


class CatererPaymentListResponse(BaseModel):
    items: List[CatererPaymentResponse]
    total: int
