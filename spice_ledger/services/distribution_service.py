"""Distribution (caterer bill) service."""
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from sqlalchemy import select, func, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from spice_ledger.config import settings
from spice_ledger.core.exceptions import (
    NotFoundError,
    OverpaymentError,
    RelatedRecordsError,
    StaleStateError,
    ValidationError,
)
from spice_ledger.models.caterer import Caterer
from spice_ledger.models.caterer_payment import CatererPayment
from spice_ledger.models.distribution import Distribution, DistributionItem, DistributionStatus
from spice_ledger.models.payment_reminder import PaymentReminder
from spice_ledger.schemas.distribution import DistributionCreate
from spice_ledger.services.balance_sync_service import BalanceSyncService
from spice_ledger.services.billing_ledger import BillingLedgerService, parse_payment_mode
from spice_ledger.services.gst_calculator import calculate_line, calculate_totals, round2, to_money, ZERO
from spice_ledger.services.status_engine import (
    OPEN_STATUS_VALUES,
    can_transition,
    derive_status_for,
    ensure_transition,
    parse_status,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BillSummary:
    total_bills: int
    total_amount: Decimal
    total_paid: Decimal
    total_due: Decimal
    overdue_amount: Decimal
    overdue_bills: int


class DistributionService:
    """Creates, transitions and deletes caterer bills."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = BillingLedgerService(db)

    async def generate_bill_number(self, on: Optional[date] = None) -> str:
        """Next free bill number for the day, e.g. CB-20240115-007."""
        on = on or date.today()
        prefix = f"{settings.BILL_NUMBER_PREFIX}-{on.strftime('%Y%m%d')}-"

        count_result = await self.db.execute(
            select(func.count(Distribution.id)).where(Distribution.bill_no.like(f"{prefix}%"))
        )
        sequence = (count_result.scalar() or 0) + 1

        while True:
            bill_no = f"{prefix}{str(sequence).zfill(3)}"
            if not await self._bill_number_exists(bill_no):
                return bill_no
            sequence += 1

    async def _bill_number_exists(self, bill_no: str) -> bool:
        result = await self.db.execute(
            select(Distribution.id).where(Distribution.bill_no == bill_no)
        )
        return result.scalar_one_or_none() is not None

    async def create_distribution(
        self,
        data: DistributionCreate,
        today: Optional[date] = None,
    ) -> Distribution:
        """
        Save a bill with its items.

        Line amounts and totals are always recomputed. A non-zero amount_paid
        is recorded as a payment through the ledger.
        """
        caterer = await self.db.get(Caterer, data.caterer_id)
        if not caterer:
            raise NotFoundError("Caterer", data.caterer_id)
        if not data.items:
            raise ValidationError("A bill needs at least one item")

        items = []
        lines = []
        for position, item_in in enumerate(data.items):
            line = calculate_line(item_in.quantity, item_in.rate, item_in.gst_percentage)
            if item_in.amount is not None and round2(item_in.amount) != line.amount:
                logger.warning(
                    f"Item '{item_in.item_name}': submitted amount {item_in.amount} "
                    f"replaced by computed {line.amount}"
                )
            if item_in.gst_amount is not None and round2(item_in.gst_amount) != line.gst_amount:
                logger.warning(
                    f"Item '{item_in.item_name}': submitted GST {item_in.gst_amount} "
                    f"replaced by computed {line.gst_amount}"
                )
            lines.append(line)
            items.append(DistributionItem(
                position=position,
                spice_id=item_in.spice_id,
                item_name=item_in.item_name,
                quantity=item_in.quantity,
                unit=item_in.unit,
                rate=item_in.rate,
                gst_percentage=item_in.gst_percentage,
                gst_amount=line.gst_amount,
                amount=line.amount,
            ))
        totals = calculate_totals(lines)

        initial_payment = to_money(data.amount_paid or ZERO, "amount_paid")
        if initial_payment > totals.grand_total:
            raise OverpaymentError(initial_payment, totals.grand_total)

        bill_no = (data.bill_no or "").strip()
        if bill_no:
            if await self._bill_number_exists(bill_no):
                raise ValidationError(f"Bill number {bill_no} already exists", {"bill_no": bill_no})
        else:
            bill_no = await self.generate_bill_number(today)

        distribution = Distribution(
            bill_no=bill_no,
            caterer_id=caterer.id,
            distribution_date=data.distribution_date,
            due_date=data.due_date,
            total_amount=totals.total_amount,
            total_gst_amount=totals.total_gst_amount,
            grand_total=totals.grand_total,
            amount_paid=ZERO,
            balance_due=totals.grand_total,
            payment_mode=parse_payment_mode(data.payment_mode).value if data.payment_mode else None,
            notes=data.notes,
            receipt_image=data.receipt_image,
            items=items,
        )
        distribution.status = derive_status_for(distribution, today).value
        self.db.add(distribution)

        caterer.total_billed = round2(caterer.total_billed + totals.grand_total)
        caterer.balance_due = round2(caterer.balance_due + totals.grand_total)
        caterer.total_orders = caterer.total_orders + 1
        try:
            await self.db.flush()
        except IntegrityError:
            # Another request took the number between the check and the insert
            await self.db.rollback()
            logger.warning(f"Bill number {bill_no} was taken concurrently")
            raise ValidationError(f"Bill number {bill_no} already exists", {"bill_no": bill_no})

        logger.info(
            f"Bill {bill_no} created for {caterer.name}: {len(items)} items, "
            f"grand total {totals.grand_total}"
        )

        if initial_payment > ZERO:
            await self.ledger.apply_payment(
                distribution.id,
                initial_payment,
                payment_date=data.distribution_date,
                payment_mode=data.payment_mode,
                notes=f"Payment for bill {bill_no}",
                receipt_image=data.receipt_image,
                today=today,
            )

        return await self.get_distribution(distribution.id)

    async def get_distribution(self, distribution_id: uuid.UUID) -> Distribution:
        result = await self.db.execute(
            select(Distribution)
            .options(selectinload(Distribution.items))
            .where(Distribution.id == distribution_id)
            .execution_options(populate_existing=True)
        )
        distribution = result.scalar_one_or_none()
        if not distribution:
            raise NotFoundError("Distribution", distribution_id)
        return distribution

    async def list_distributions(
        self,
        caterer_id: Optional[uuid.UUID] = None,
        status: Optional[Union[str, DistributionStatus]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Distribution], int]:
        query = select(Distribution).options(selectinload(Distribution.items))
        count_query = select(func.count(Distribution.id))

        if caterer_id:
            query = query.where(Distribution.caterer_id == caterer_id)
            count_query = count_query.where(Distribution.caterer_id == caterer_id)
        if status:
            status_value = parse_status(status).value
            query = query.where(Distribution.status == status_value)
            count_query = count_query.where(Distribution.status == status_value)

        total = (await self.db.execute(count_query)).scalar() or 0
        query = query.order_by(
            Distribution.distribution_date.desc(),
            Distribution.created_at.desc(),
        ).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_status(
        self,
        distribution_id: uuid.UUID,
        target: Union[str, DistributionStatus],
        today: Optional[date] = None,
    ) -> Distribution:
        """
        Explicit status change. Cancelling is always allowed before payment
        completes; any other target must match the ledger-derived status.
        """
        distribution = await self.get_distribution(distribution_id)
        current = parse_status(distribution.status)
        derived = derive_status_for(distribution, today)
        new_status = ensure_transition(current, target, derived)

        if new_status == current:
            return distribution

        distribution.status = new_status.value
        try:
            await self.db.flush()
        except StaleDataError:
            raise StaleStateError(
                f"Bill {distribution.bill_no} was modified by another request, reload and retry",
                {"distribution_id": str(distribution.id)},
            )

        logger.info(f"Bill {distribution.bill_no}: {current.value} -> {new_status.value}")

        if new_status == DistributionStatus.CANCELLED:
            await BalanceSyncService(self.db).sync_caterer_balance(distribution.caterer_id)

        return distribution

    async def refresh_statuses(self, today: Optional[date] = None) -> int:
        """Re-derive date-driven statuses (e.g. pending -> overdue). Returns the number changed."""
        result = await self.db.execute(
            select(Distribution).where(Distribution.status.in_(OPEN_STATUS_VALUES))
        )
        changed = 0
        for distribution in result.scalars().all():
            current = parse_status(distribution.status)
            derived = derive_status_for(distribution, today)
            if derived != current and can_transition(current, derived):
                distribution.status = derived.value
                changed += 1

        if changed:
            await self.db.flush()
            logger.info(f"Refreshed status of {changed} bills")
        return changed

    async def get_related_records_counts(self, distribution_id: uuid.UUID) -> dict:
        payments = (await self.db.execute(
            select(func.count(CatererPayment.id))
            .where(CatererPayment.distribution_id == distribution_id)
        )).scalar() or 0
        reminders = (await self.db.execute(
            select(func.count(PaymentReminder.id))
            .where(PaymentReminder.distribution_id == distribution_id)
        )).scalar() or 0
        return {"payments": payments, "reminders": reminders}

    async def delete_distribution(self, distribution_id: uuid.UUID, cascade: bool = False) -> None:
        """
        Delete a bill and its items.

        Payments block the delete unless cascade is confirmed. Reminders are
        detached, never deleted.
        """
        distribution = await self.get_distribution(distribution_id)
        counts = await self.get_related_records_counts(distribution_id)

        if counts["payments"] and not cascade:
            raise RelatedRecordsError(
                f"Cannot delete bill {distribution.bill_no}: "
                f"{counts['payments']} payments recorded against it",
                payments=counts["payments"],
            )

        if counts["payments"]:
            await self.db.execute(
                delete(CatererPayment).where(CatererPayment.distribution_id == distribution_id)
            )
            logger.info(f"Deleted {counts['payments']} payments of bill {distribution.bill_no}")

        if counts["reminders"]:
            await self.db.execute(
                update(PaymentReminder)
                .where(PaymentReminder.distribution_id == distribution_id)
                .values(distribution_id=None)
            )

        caterer_id = distribution.caterer_id
        bill_no = distribution.bill_no
        await self.db.delete(distribution)
        await self.db.flush()

        await BalanceSyncService(self.db).sync_caterer_balance(caterer_id)
        logger.info(f"Bill {bill_no} deleted")

    async def summarize(
        self,
        caterer_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> BillSummary:
        """Totals over non-cancelled bills. Overdue means past due with a balance left."""
        today = today or date.today()
        query = select(Distribution).where(
            Distribution.status != DistributionStatus.CANCELLED.value
        )
        if caterer_id:
            query = query.where(Distribution.caterer_id == caterer_id)
        distributions = (await self.db.execute(query)).scalars().all()

        total_amount = total_paid = total_due = overdue_amount = ZERO
        overdue_bills = 0
        for distribution in distributions:
            total_amount += distribution.grand_total
            total_paid += distribution.amount_paid
            total_due += distribution.balance_due
            reference_date = distribution.due_date or distribution.distribution_date
            if distribution.balance_due > ZERO and reference_date < today:
                overdue_amount += distribution.balance_due
                overdue_bills += 1

        return BillSummary(
            total_bills=len(distributions),
            total_amount=round2(total_amount),
            total_paid=round2(total_paid),
            total_due=round2(total_due),
            overdue_amount=round2(overdue_amount),
            overdue_bills=overdue_bills,
        )
