"""Persisted payment reminders."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Date, Index
from sqlalchemy.orm import Mapped, mapped_column

from spice_ledger.database import Base
from spice_ledger.db_types import UUIDType, MoneyType


class ReminderStatus(str, Enum):
    """Reminder urgency, derived from reminder_date against today."""
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"
    PENDING = "pending"


class PaymentReminder(Base):
    """
    Payment reminder row.

    At most one row per distribution. The distribution link is a weak
    reference: deleting a bill nulls it, deleting a reminder never touches
    the bill.
    """
    __tablename__ = "payment_reminders"
    __table_args__ = (
        Index("ix_payment_reminders_reminder_date", "reminder_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    caterer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("caterers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    distribution_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("distributions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    original_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_reminder_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Snoozed until this date"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        nullable=False,
        comment="overdue, due_today, upcoming, pending"
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<PaymentReminder(reminder_date={self.reminder_date}, status='{self.status}')>"
