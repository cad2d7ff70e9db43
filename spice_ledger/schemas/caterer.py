"""Pydantic schemas for caterers and their balances."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from spice_ledger.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class CatererCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=15)
    is_active: bool = True


class CatererUpdate(BaseUpdateSchema):
    """Profile fields only. Balances change through the ledger and sync job."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    gst_number: Optional[str] = Field(None, max_length=15)
    is_active: Optional[bool] = None


class CatererResponse(BaseResponseSchema):
    id: UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    is_active: bool
    balance_due: Decimal
    total_paid: Decimal
    total_billed: Decimal
    total_orders: int
    last_synced_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CatererListResponse(BaseModel):
    items: List[CatererResponse]
    total: int
    skip: int = 0
    limit: int = 100


class CatererBalanceResponse(BaseModel):
    caterer_id: UUID
    total_billed: Decimal
    total_paid: Decimal
    balance_due: Decimal
    total_orders: int
    last_synced_at: Optional[datetime] = None


class RelatedRecordsResponse(BaseModel):
    bills: int
    payments: int
    total: int


class BalanceSyncResultResponse(BaseModel):
    caterer_id: UUID
    caterer_name: Optional[str] = None
    success: bool
    balance: Optional[CatererBalanceResponse] = None
    error: Optional[str] = None


class BalanceSyncReportResponse(BaseModel):
    total: int
    successful: int
    failed: int
    results: List[BalanceSyncResultResponse]
