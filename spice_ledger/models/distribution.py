"""Distribution (caterer bill) and its GST line items."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spice_ledger.database import Base
from spice_ledger.db_types import UUIDType, MoneyType, QuantityType, PercentType


class DistributionStatus(str, Enum):
    """Distribution lifecycle status."""
    PENDING = "pending"        # Not yet due, nothing paid
    ACTIVE = "active"          # Due today, nothing paid
    PARTIAL = "partial"
    PAID = "paid"              # Terminal
    OVERDUE = "overdue"
    CANCELLED = "cancelled"    # Terminal, excluded from ledger aggregation


class Distribution(Base):
    """
    Caterer bill.

    total_amount / total_gst_amount / grand_total come from the GST
    calculator. amount_paid / balance_due / status change only through the
    billing ledger or an explicit status transition.
    """
    __tablename__ = "distributions"
    __table_args__ = (
        Index("ix_distributions_caterer_status", "caterer_id", "status"),
        Index("ix_distributions_distribution_date", "distribution_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    bill_no: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Bill number e.g., CB-20240115-001"
    )
    caterer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("caterers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    distribution_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Totals
    total_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False,
        comment="Sum of line amounts before GST"
    )
    total_gst_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False
    )
    grand_total: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False
    )

    # Ledger
    amount_paid: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False
    )
    balance_due: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        nullable=False,
        index=True,
        comment="pending, active, partial, paid, overdue, cancelled"
    )

    payment_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
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

    # Relationships
    items: Mapped[List["DistributionItem"]] = relationship(
        "DistributionItem",
        back_populates="distribution",
        cascade="all, delete-orphan",
        order_by="DistributionItem.position"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Distribution(bill_no='{self.bill_no}', status='{self.status}')>"


class DistributionItem(Base):
    """Bill line item: amount = quantity * rate, gst_amount = amount * gst% / 100."""
    __tablename__ = "distribution_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    distribution_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("distributions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    spice_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="kg", nullable=False)
    rate: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    gst_percentage: Mapped[Decimal] = mapped_column(
        PercentType,
        default=Decimal("0"),
        nullable=False
    )
    gst_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    distribution: Mapped["Distribution"] = relationship(
        "Distribution",
        back_populates="items"
    )

    def __repr__(self) -> str:
        return f"<DistributionItem(item_name='{self.item_name}', amount={self.amount})>"
