"""Pydantic schemas for payment reminders."""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional, List, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field

from spice_ledger.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class PaymentReminderCreate(BaseCreateSchema):
    caterer_id: UUID
    distribution_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    original_due_date: date
    reminder_date: date
    next_reminder_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentReminderUpdate(BaseUpdateSchema):
    amount: Optional[Decimal] = Field(None, gt=0)
    reminder_date: Optional[date] = None
    next_reminder_date: Optional[date] = None
    is_read: Optional[bool] = None
    notes: Optional[str] = None


class NextReminderRequest(BaseModel):
    next_reminder_date: date


class PromoteReminderRequest(BaseModel):
    distribution_id: UUID
    next_reminder_date: Optional[date] = None


class PaymentReminderResponse(BaseResponseSchema):
    """A stored reminder row."""
    id: UUID
    caterer_id: UUID
    distribution_id: Optional[UUID] = None
    amount: Decimal
    original_due_date: date
    reminder_date: date
    next_reminder_date: Optional[date] = None
    status: str
    is_read: bool
    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PersistedReminderView(BaseModel):
    kind: Literal["persisted"] = "persisted"
    key: str
    id: UUID
    caterer_id: UUID
    distribution_id: Optional[UUID] = None
    amount: Decimal
    original_due_date: date
    reminder_date: date
    next_reminder_date: Optional[date] = None
    status: str
    is_read: bool
    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None


class SynthesizedReminderView(BaseModel):
    kind: Literal["synthesized"] = "synthesized"
    key: str
    caterer_id: UUID
    distribution_id: UUID
    bill_no: str
    amount: Decimal
    reminder_date: date
    status: str
    distribution_status: str
    notes: str
    is_read: bool = False


ReminderView = Annotated[
    Union[PersistedReminderView, SynthesizedReminderView],
    Field(discriminator="kind"),
]


class ReminderListResponse(BaseModel):
    items: List[ReminderView]
    total: int
