"""
Billing ledger: applies payments to distributions.

The pure core (LedgerState / apply_payment) enforces the ledger rules:

    amount_paid' = amount_paid + amount
    balance_due' = max(0, grand_total - amount_paid')

Payments against paid or cancelled bills, non-positive amounts, payments
above the outstanding balance and payments made against a balance the
caller read before someone else changed it are all refused. Payments are
append-only; there is no reverse or void path.

BillingLedgerService wraps the core with persistence: it records the
CatererPayment, re-derives the bill status, keeps the caterer aggregate in
step and clears reminders once a bill is settled.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from spice_ledger.core.enum_utils import to_enum
from spice_ledger.core.exceptions import (
    NotFoundError,
    OverpaymentError,
    StaleStateError,
    ValidationError,
)
from spice_ledger.models.caterer import Caterer
from spice_ledger.models.caterer_payment import CatererPayment, PaymentMode
from spice_ledger.models.distribution import Distribution, DistributionStatus
from spice_ledger.models.payment_reminder import PaymentReminder
from spice_ledger.services.gst_calculator import round2, to_decimal, to_money, ZERO
from spice_ledger.services.status_engine import derive_status_for, parse_status, TERMINAL_STATUSES


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerState:
    """Snapshot of one distribution's ledger."""
    grand_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: DistributionStatus

    @classmethod
    def from_distribution(cls, distribution: Distribution) -> "LedgerState":
        return cls(
            grand_total=round2(to_decimal(distribution.grand_total, "grand_total")),
            amount_paid=round2(to_decimal(distribution.amount_paid, "amount_paid")),
            balance_due=round2(to_decimal(distribution.balance_due, "balance_due")),
            status=parse_status(distribution.status),
        )


@dataclass(frozen=True)
class PaymentApplication:
    """Outcome of applying one payment to a LedgerState."""
    amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: DistributionStatus
    previous: LedgerState

    @property
    def settles(self) -> bool:
        return self.balance_due == ZERO


def apply_payment(
    state: LedgerState,
    amount: Any,
    *,
    expected_balance_due: Any = None,
) -> PaymentApplication:
    """
    Apply a payment to a ledger snapshot.

    Raises:
        ValidationError: bill already paid or cancelled, amount <= 0, or an
            amount with fractions of a paisa.
        StaleStateError: expected_balance_due no longer matches the ledger.
        OverpaymentError: amount exceeds the balance due.
    """
    if state.status in TERMINAL_STATUSES:
        raise ValidationError(
            f"Cannot record a payment against a {state.status.value} bill",
            {"status": state.status.value},
        )

    payment = to_money(amount, "amount")
    if payment <= ZERO:
        raise ValidationError("Payment amount must be greater than 0", {"amount": str(payment)})

    if expected_balance_due is not None:
        expected = to_money(expected_balance_due, "expected_balance_due")
        if expected != state.balance_due:
            raise StaleStateError(
                f"Balance due changed from {expected} to {state.balance_due}",
                {"expected_balance_due": str(expected), "balance_due": str(state.balance_due)},
            )

    if payment > state.balance_due:
        raise OverpaymentError(payment, state.balance_due)

    amount_paid = round2(state.amount_paid + payment)
    balance_due = max(ZERO, round2(state.grand_total - amount_paid))
    status = DistributionStatus.PAID if balance_due == ZERO else DistributionStatus.PARTIAL

    return PaymentApplication(
        amount=payment,
        amount_paid=amount_paid,
        balance_due=balance_due,
        status=status,
        previous=state,
    )


def parse_payment_mode(value: Union[str, PaymentMode, None]) -> PaymentMode:
    if value is None:
        return PaymentMode.CASH
    mode = to_enum(value, PaymentMode)
    if mode is None:
        raise ValidationError(f"Unknown payment mode: {value!r}", {"payment_mode": value})
    return mode


@dataclass
class PaymentResult:
    """A recorded payment and the distribution it was applied to."""
    payment: CatererPayment
    distribution: Optional[Distribution] = None
    application: Optional[PaymentApplication] = None


class BillingLedgerService:
    """Records caterer payments and keeps bills and caterer balances in step."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_caterer(self, caterer_id: uuid.UUID) -> Caterer:
        caterer = await self.db.get(Caterer, caterer_id)
        if not caterer:
            raise NotFoundError("Caterer", caterer_id)
        return caterer

    async def _flush(self, distribution: Optional[Distribution] = None) -> None:
        try:
            await self.db.flush()
        except StaleDataError:
            bill = distribution.bill_no if distribution is not None else "distribution"
            raise StaleStateError(
                f"Bill {bill} was modified by another request, reload and retry",
                {"distribution_id": str(distribution.id) if distribution is not None else None},
            )

    async def apply_payment(
        self,
        distribution_id: uuid.UUID,
        amount: Any,
        payment_date: Optional[date] = None,
        payment_mode: Union[str, PaymentMode, None] = PaymentMode.CASH,
        reference_no: Optional[str] = None,
        notes: Optional[str] = None,
        receipt_image: Optional[str] = None,
        expected_balance_due: Any = None,
        today: Optional[date] = None,
    ) -> PaymentResult:
        """Record a payment against one distribution."""
        result = await self.db.execute(
            select(Distribution)
            .where(Distribution.id == distribution_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        distribution = result.scalar_one_or_none()
        if not distribution:
            raise NotFoundError("Distribution", distribution_id)

        mode = parse_payment_mode(payment_mode)
        state = LedgerState.from_distribution(distribution)
        try:
            application = apply_payment(state, amount, expected_balance_due=expected_balance_due)
        except OverpaymentError as e:
            raise OverpaymentError(e.amount, e.balance_due, distribution.id)

        caterer = await self._get_caterer(distribution.caterer_id)

        payment = CatererPayment(
            caterer_id=distribution.caterer_id,
            distribution_id=distribution.id,
            amount=application.amount,
            payment_date=payment_date or date.today(),
            payment_mode=mode.value,
            reference_no=reference_no,
            notes=notes,
            receipt_image=receipt_image,
        )
        self.db.add(payment)

        distribution.amount_paid = application.amount_paid
        distribution.balance_due = application.balance_due
        distribution.payment_mode = mode.value
        distribution.status = derive_status_for(distribution, today).value

        caterer.total_paid = round2(caterer.total_paid + application.amount)
        caterer.balance_due = max(ZERO, round2(caterer.balance_due - application.amount))

        if distribution.status == DistributionStatus.PAID.value:
            await self.db.execute(
                delete(PaymentReminder).where(PaymentReminder.distribution_id == distribution.id)
            )

        await self._flush(distribution)

        logger.info(
            f"Payment {application.amount} recorded for bill {distribution.bill_no}: "
            f"paid {application.amount_paid}, due {application.balance_due}, "
            f"status {distribution.status}"
        )
        return PaymentResult(payment=payment, distribution=distribution, application=application)

    async def record_caterer_payment(
        self,
        caterer_id: uuid.UUID,
        amount: Any,
        payment_date: Optional[date] = None,
        payment_mode: Union[str, PaymentMode, None] = PaymentMode.CASH,
        reference_no: Optional[str] = None,
        notes: Optional[str] = None,
        receipt_image: Optional[str] = None,
    ) -> PaymentResult:
        """Record a caterer-level payment not linked to any bill."""
        payment_amount = to_money(amount, "amount")
        if payment_amount <= ZERO:
            raise ValidationError("Payment amount must be greater than 0", {"amount": str(payment_amount)})

        mode = parse_payment_mode(payment_mode)
        caterer = await self._get_caterer(caterer_id)

        payment = CatererPayment(
            caterer_id=caterer.id,
            distribution_id=None,
            amount=payment_amount,
            payment_date=payment_date or date.today(),
            payment_mode=mode.value,
            reference_no=reference_no,
            notes=notes,
            receipt_image=receipt_image,
        )
        self.db.add(payment)

        caterer.total_paid = round2(caterer.total_paid + payment_amount)
        caterer.balance_due = max(ZERO, round2(caterer.balance_due - payment_amount))
        await self._flush()

        logger.info(f"Caterer-level payment {payment_amount} recorded for {caterer.name}")
        return PaymentResult(payment=payment)

    async def get_payment(self, payment_id: uuid.UUID) -> CatererPayment:
        payment = await self.db.get(CatererPayment, payment_id)
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def get_distribution(self, distribution_id: uuid.UUID) -> Distribution:
        distribution = await self.db.get(Distribution, distribution_id)
        if not distribution:
            raise NotFoundError("Distribution", distribution_id)
        return distribution

    async def list_payments(
        self,
        caterer_id: Optional[uuid.UUID] = None,
        distribution_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[CatererPayment], int]:
        query = select(CatererPayment)
        count_query = select(func.count(CatererPayment.id))
        if caterer_id:
            query = query.where(CatererPayment.caterer_id == caterer_id)
            count_query = count_query.where(CatererPayment.caterer_id == caterer_id)
        if distribution_id:
            query = query.where(CatererPayment.distribution_id == distribution_id)
            count_query = count_query.where(CatererPayment.distribution_id == distribution_id)

        total = (await self.db.execute(count_query)).scalar() or 0
        query = query.order_by(
            CatererPayment.payment_date.desc(),
            CatererPayment.created_at.desc(),
        ).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total
