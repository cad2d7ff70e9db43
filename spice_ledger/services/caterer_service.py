"""Caterer service: profile CRUD, balances and guarded deletion."""
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.core.exceptions import NotFoundError, RelatedRecordsError
from spice_ledger.models.caterer import Caterer
from spice_ledger.models.caterer_payment import CatererPayment
from spice_ledger.models.distribution import Distribution, DistributionItem
from spice_ledger.models.payment_reminder import PaymentReminder
from spice_ledger.schemas.caterer import CatererCreate, CatererUpdate
from spice_ledger.services.balance_sync_service import CatererBalance
from spice_ledger.services.gst_calculator import ZERO


logger = logging.getLogger(__name__)


class CatererService:
    """Service for caterer management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_caterer(self, data: CatererCreate) -> Caterer:
        caterer = Caterer(
            **data.model_dump(),
            balance_due=ZERO,
            total_paid=ZERO,
            total_billed=ZERO,
            total_orders=0,
        )
        self.db.add(caterer)
        await self.db.flush()
        logger.info(f"Caterer created: {caterer.name}")
        return caterer

    async def get_caterer(self, caterer_id: uuid.UUID) -> Caterer:
        caterer = await self.db.get(Caterer, caterer_id)
        if not caterer:
            raise NotFoundError("Caterer", caterer_id)
        return caterer

    async def list_caterers(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Caterer], int]:
        query = select(Caterer)
        count_query = select(func.count(Caterer.id))

        if search:
            pattern = f"%{search}%"
            condition = or_(Caterer.name.ilike(pattern), Caterer.phone.ilike(pattern))
            query = query.where(condition)
            count_query = count_query.where(condition)
        if is_active is not None:
            query = query.where(Caterer.is_active == is_active)
            count_query = count_query.where(Caterer.is_active == is_active)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(query.order_by(Caterer.name).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def update_caterer(self, caterer_id: uuid.UUID, data: CatererUpdate) -> Caterer:
        caterer = await self.get_caterer(caterer_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(caterer, field, value)
        await self.db.flush()
        return caterer

    async def get_balance(self, caterer_id: uuid.UUID) -> CatererBalance:
        """The stored aggregate, as last updated by the ledger or sync job."""
        caterer = await self.get_caterer(caterer_id)
        return CatererBalance(
            total_billed=caterer.total_billed,
            total_paid=caterer.total_paid,
            balance_due=caterer.balance_due,
            total_orders=caterer.total_orders,
        )

    async def get_related_records_counts(self, caterer_id: uuid.UUID) -> dict:
        """Bills and payments that would block deleting the caterer."""
        bills = (await self.db.execute(
            select(func.count(Distribution.id)).where(Distribution.caterer_id == caterer_id)
        )).scalar() or 0
        payments = (await self.db.execute(
            select(func.count(CatererPayment.id)).where(CatererPayment.caterer_id == caterer_id)
        )).scalar() or 0
        return {"bills": bills, "payments": payments, "total": bills + payments}

    async def delete_caterer(
        self,
        caterer_id: uuid.UUID,
        force: bool = False,
        cascade: bool = False,
    ) -> None:
        """
        Delete a caterer.

        Without force or cascade the delete is refused while bills or
        payments exist. With either flag the caterer's payments, bills, bill
        items and reminders are removed with it.
        """
        caterer = await self.get_caterer(caterer_id)
        counts = await self.get_related_records_counts(caterer_id)

        if counts["total"] and not (force or cascade):
            raise RelatedRecordsError(
                f"Cannot delete caterer with related records: {counts['total']} related records found",
                bills=counts["bills"],
                payments=counts["payments"],
            )

        if counts["total"]:
            mode = "cascade" if cascade else "force"
            logger.info(
                f"{mode.capitalize()} deleting caterer {caterer.name}: "
                f"{counts['bills']} bills, {counts['payments']} payments"
            )
            bill_ids = select(Distribution.id).where(Distribution.caterer_id == caterer_id)
            await self.db.execute(delete(CatererPayment).where(CatererPayment.caterer_id == caterer_id))
            await self.db.execute(delete(DistributionItem).where(DistributionItem.distribution_id.in_(bill_ids)))
            await self.db.execute(delete(Distribution).where(Distribution.caterer_id == caterer_id))

        await self.db.execute(delete(PaymentReminder).where(PaymentReminder.caterer_id == caterer_id))
        await self.db.delete(caterer)
        await self.db.flush()
        logger.info(f"Caterer deleted: {caterer.name}")
