"""
Shared Pydantic bases for the ledger schemas.

Responses are built straight from ORM rows. Money stays Decimal all the way
out, so it reaches clients as "1050.00" strings rather than floats.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """Read model for ORM rows (caterers, bills, payments, reminders)."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BaseCreateSchema(BaseModel):
    # Unknown keys from older clients are dropped, not rejected
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


class BaseUpdateSchema(BaseCreateSchema):
    """Partial update: every field optional, only the ones sent are applied."""
