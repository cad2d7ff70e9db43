"""Caterer payments. Rows are append-only."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Date, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from spice_ledger.database import Base
from spice_ledger.db_types import UUIDType, MoneyType


class PaymentMode(str, Enum):
    """Payment mode enumeration."""
    CASH = "cash"
    BANK = "bank"
    UPI = "upi"
    CHEQUE = "cheque"
    CREDIT = "credit"
    OTHER = "other"


class CatererPayment(Base):
    """
    Payment received from a caterer.

    Linked to one distribution, or caterer-level when distribution_id is NULL.
    """
    __tablename__ = "caterer_payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_caterer_payments_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    caterer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("caterers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    distribution_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("distributions.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_mode: Mapped[str] = mapped_column(
        String(20),
        default="cash",
        nullable=False,
        comment="cash, bank, upi, cheque, credit, other"
    )
    reference_no: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Cheque/UTR/transaction reference"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<CatererPayment(amount={self.amount}, distribution_id={self.distribution_id})>"
