"""
Caterer balance reconciliation.

The caterer aggregate (total_billed, total_paid, balance_due, total_orders)
is a cached projection that the ledger updates incrementally. This service
recomputes it from the authoritative rows and overwrites it:

    total_billed = sum(grand_total) over non-cancelled bills
    total_paid   = sum(amount) over all of the caterer's payments
    balance_due  = max(0, total_billed - total_paid)
    total_orders = count of non-cancelled bills

Recomputation never reads the stored aggregate, so it is idempotent.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.core.exceptions import LedgerError, NotFoundError
from spice_ledger.models.caterer import Caterer
from spice_ledger.models.caterer_payment import CatererPayment
from spice_ledger.models.distribution import Distribution, DistributionStatus
from spice_ledger.services.gst_calculator import round2, to_decimal, ZERO
from spice_ledger.services.status_engine import derive_status_for, parse_status


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatererBalance:
    total_billed: Decimal
    total_paid: Decimal
    balance_due: Decimal
    total_orders: int


def compute_caterer_balance(distributions: Iterable, payments: Iterable) -> CatererBalance:
    """
    Recompute a caterer aggregate from its bills and payments.

    distributions need `status` and `grand_total`; payments need `amount`.
    Unknown stored statuses raise ValidationError.
    """
    total_billed = ZERO
    total_orders = 0
    for distribution in distributions:
        if parse_status(distribution.status) == DistributionStatus.CANCELLED:
            continue
        total_billed += to_decimal(distribution.grand_total, "grand_total")
        total_orders += 1

    total_paid = ZERO
    for payment in payments:
        total_paid += to_decimal(payment.amount, "amount")

    total_billed = round2(total_billed)
    total_paid = round2(total_paid)
    return CatererBalance(
        total_billed=total_billed,
        total_paid=total_paid,
        balance_due=max(ZERO, round2(total_billed - total_paid)),
        total_orders=total_orders,
    )


@dataclass
class CatererSyncResult:
    caterer_id: uuid.UUID
    caterer_name: Optional[str]
    success: bool
    balance: Optional[CatererBalance] = None
    error: Optional[str] = None


@dataclass
class BalanceSyncReport:
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: List[CatererSyncResult] = field(default_factory=list)

    def add(self, result: CatererSyncResult) -> None:
        self.results.append(result)
        self.total += 1
        if result.success:
            self.successful += 1
        else:
            self.failed += 1


@dataclass
class LedgerRepairReport:
    checked: int = 0
    repaired: int = 0
    bill_numbers: List[str] = field(default_factory=list)


class BalanceSyncService:
    """Recomputes caterer aggregates and distribution ledgers from stored rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def sync_caterer_balance(self, caterer_id: uuid.UUID) -> CatererBalance:
        """Overwrite one caterer's aggregate from its bills and payments."""
        caterer = await self.db.get(Caterer, caterer_id)
        if not caterer:
            raise NotFoundError("Caterer", caterer_id)

        distributions = (await self.db.execute(
            select(Distribution.status, Distribution.grand_total)
            .where(Distribution.caterer_id == caterer_id)
        )).all()
        payments = (await self.db.execute(
            select(CatererPayment.amount)
            .where(CatererPayment.caterer_id == caterer_id)
        )).all()

        balance = compute_caterer_balance(distributions, payments)

        drifted = (
            caterer.balance_due != balance.balance_due
            or caterer.total_paid != balance.total_paid
            or caterer.total_billed != balance.total_billed
            or caterer.total_orders != balance.total_orders
        )
        if drifted:
            logger.info(
                f"Balance drift for caterer {caterer.name}: "
                f"due {caterer.balance_due} -> {balance.balance_due}, "
                f"paid {caterer.total_paid} -> {balance.total_paid}, "
                f"billed {caterer.total_billed} -> {balance.total_billed}"
            )

        caterer.total_billed = balance.total_billed
        caterer.total_paid = balance.total_paid
        caterer.balance_due = balance.balance_due
        caterer.total_orders = balance.total_orders
        caterer.last_synced_at = datetime.now(timezone.utc)
        await self.db.flush()

        return balance

    async def sync_all_caterer_balances(self) -> BalanceSyncReport:
        """
        Sync every caterer, each inside its own SAVEPOINT so one failure does
        not undo the others.
        """
        caterers = (await self.db.execute(
            select(Caterer.id, Caterer.name).order_by(Caterer.name)
        )).all()

        report = BalanceSyncReport()
        for caterer_id, caterer_name in caterers:
            try:
                async with self.db.begin_nested():
                    balance = await self.sync_caterer_balance(caterer_id)
                report.add(CatererSyncResult(
                    caterer_id=caterer_id,
                    caterer_name=caterer_name,
                    success=True,
                    balance=balance,
                ))
            except (LedgerError, SQLAlchemyError) as e:
                logger.error(f"Balance sync failed for caterer {caterer_name}: {e}")
                report.add(CatererSyncResult(
                    caterer_id=caterer_id,
                    caterer_name=caterer_name,
                    success=False,
                    error=str(e),
                ))

        logger.info(
            f"Balance sync complete: {report.successful} successful, "
            f"{report.failed} failed out of {report.total}"
        )
        return report

    async def repair_distribution_ledgers(
        self,
        caterer_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> LedgerRepairReport:
        """
        Recompute amount_paid, balance_due and status of each bill from the
        payments linked to it, then re-sync the affected caterers.
        """
        query = select(Distribution)
        payment_query = select(CatererPayment.distribution_id, CatererPayment.amount).where(
            CatererPayment.distribution_id.is_not(None)
        )
        if caterer_id:
            query = query.where(Distribution.caterer_id == caterer_id)
            payment_query = payment_query.where(CatererPayment.caterer_id == caterer_id)

        distributions = (await self.db.execute(query)).scalars().all()
        paid_by_bill = {}
        for distribution_id, amount in (await self.db.execute(payment_query)).all():
            paid_by_bill[distribution_id] = paid_by_bill.get(distribution_id, ZERO) + to_decimal(amount, "amount")

        report = LedgerRepairReport()
        touched_caterers = set()
        for distribution in distributions:
            report.checked += 1
            amount_paid = round2(paid_by_bill.get(distribution.id, ZERO))
            balance_due = max(ZERO, round2(distribution.grand_total - amount_paid))

            before = (distribution.amount_paid, distribution.balance_due, distribution.status)

            distribution.amount_paid = amount_paid
            distribution.balance_due = balance_due
            distribution.status = derive_status_for(distribution, today).value
            if (distribution.amount_paid, distribution.balance_due, distribution.status) == before:
                continue

            logger.info(
                f"Repaired bill {distribution.bill_no}: paid {before[0]} -> {amount_paid}, "
                f"due {before[1]} -> {balance_due}, status {before[2]} -> {distribution.status}"
            )
            report.repaired += 1
            report.bill_numbers.append(distribution.bill_no)
            touched_caterers.add(distribution.caterer_id)

        await self.db.flush()
        for touched in touched_caterers:
            await self.sync_caterer_balance(touched)

        logger.info(f"Ledger repair: {report.repaired} of {report.checked} bills corrected")
        return report
