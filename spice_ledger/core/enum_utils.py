"""
Enum helpers for the VARCHAR status columns.

Statuses and payment modes are stored as lowercase strings ("partial",
"due_today", "upi"), not native database enums. The Python Enum classes
live next to their models and are used for validation only. Clients may
send any casing; it is normalised on the way in.
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type

from pydantic import field_validator


T = TypeVar('T', bound=Enum)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Parse a stored or client-supplied value into `enum_class`.

    Returns None for unknown values so the caller picks the error to raise.
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(str(value).strip().lower())
    except ValueError:
        return None


def lowercase_enum_validator(field_name: str, enum_class: Type[Enum]) -> classmethod:
    """
    Build a `mode='before'` validator that lowercases known enum values.

    Usage:
        class CatererPaymentCreate(BaseModel):
            payment_mode: PaymentMode

            _normalize_mode = lowercase_enum_validator('payment_mode', PaymentMode)

    Values that are not members pass through untouched for Pydantic to reject
    with its usual enum error.
    """
    known = {member.value for member in enum_class}

    @field_validator(field_name, mode='before')
    @classmethod
    def normalize(cls, v):
        if isinstance(v, str) and v.strip().lower() in known:
            return v.strip().lower()
        return v

    return normalize
