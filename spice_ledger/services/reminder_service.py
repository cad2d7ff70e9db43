"""
Payment reminder service.

Loads live bills and reminder rows, hands them to the scheduler and
persists reminder mutations. Deleting a reminder never touches its bill.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.core.exceptions import NotFoundError, ValidationError
from spice_ledger.models.caterer import Caterer
from spice_ledger.models.distribution import Distribution
from spice_ledger.models.payment_reminder import PaymentReminder
from spice_ledger.schemas.reminder import PaymentReminderCreate, PaymentReminderUpdate
from spice_ledger.services.reminder_scheduler import (
    Notification,
    NotificationState,
    Reminder,
    SynthesizedReminder,
    build_reminders,
    collect_notifications,
    compute_urgency,
    is_collectible,
    promote,
    urgent_notifications,
)
from spice_ledger.services.gst_calculator import to_money
from spice_ledger.services.status_engine import OPEN_STATUS_VALUES


logger = logging.getLogger(__name__)


class ReminderService:
    """Service for payment reminders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _open_distributions(self) -> List[Distribution]:
        result = await self.db.execute(
            select(Distribution).where(Distribution.status.in_(OPEN_STATUS_VALUES))
        )
        return list(result.scalars().all())

    async def _reminder_rows(self) -> List[PaymentReminder]:
        result = await self.db.execute(
            select(PaymentReminder).order_by(PaymentReminder.reminder_date, PaymentReminder.created_at)
        )
        return list(result.scalars().all())

    async def list_reminders(self, today: Optional[date] = None) -> List[Reminder]:
        """Persisted and synthesized reminders for every open bill."""
        today = today or date.today()
        return build_reminders(
            await self._open_distributions(),
            await self._reminder_rows(),
            today,
        )

    async def caterer_names(self, caterer_ids) -> Dict[uuid.UUID, str]:
        ids = set(caterer_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Caterer.id, Caterer.name).where(Caterer.id.in_(ids))
        )
        return {caterer_id: name for caterer_id, name in result.all()}

    async def notifications(
        self,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        state: Optional[NotificationState] = None,
    ) -> List[Notification]:
        """
        Urgent reminders as notifications.

        With a NotificationState only reminders not yet announced under it
        are returned, and they are claimed.
        """
        today = today or date.today()
        reminders = await self.list_reminders(today)
        names = await self.caterer_names(r.caterer_id for r in reminders)
        if state is None:
            return urgent_notifications(reminders, today, now, names)
        return collect_notifications(reminders, state, today, now, names)

    async def get_reminder(self, reminder_id: uuid.UUID) -> PaymentReminder:
        reminder = await self.db.get(PaymentReminder, reminder_id)
        if not reminder:
            raise NotFoundError("Reminder", reminder_id)
        return reminder

    async def _ensure_no_reminder_for(self, distribution_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(PaymentReminder.id).where(PaymentReminder.distribution_id == distribution_id)
        )
        if result.scalar_one_or_none() is not None:
            raise ValidationError(
                f"Distribution {distribution_id} already has a reminder",
                {"distribution_id": str(distribution_id)},
            )

    async def _insert(self, reminder: PaymentReminder) -> None:
        distribution_id = reminder.distribution_id
        self.db.add(reminder)
        try:
            await self.db.flush()
        except IntegrityError:
            # A concurrent request stored a reminder for the same bill first
            await self.db.rollback()
            raise ValidationError(
                f"Distribution {distribution_id} already has a reminder",
                {"distribution_id": str(distribution_id)},
            )

    async def create_reminder(
        self,
        data: PaymentReminderCreate,
        today: Optional[date] = None,
    ) -> PaymentReminder:
        """Create a reminder row. A bill may carry only one reminder."""
        today = today or date.today()
        caterer = await self.db.get(Caterer, data.caterer_id)
        if not caterer:
            raise NotFoundError("Caterer", data.caterer_id)

        if data.distribution_id is not None:
            distribution = await self.db.get(Distribution, data.distribution_id)
            if not distribution:
                raise NotFoundError("Distribution", data.distribution_id)
            if distribution.caterer_id != caterer.id:
                raise ValidationError(
                    "Distribution belongs to a different caterer",
                    {"distribution_id": str(distribution.id), "caterer_id": str(caterer.id)},
                )
            await self._ensure_no_reminder_for(distribution.id)

        reminder = PaymentReminder(
            caterer_id=caterer.id,
            distribution_id=data.distribution_id,
            amount=to_money(data.amount, "amount"),
            original_due_date=data.original_due_date,
            reminder_date=data.reminder_date,
            next_reminder_date=data.next_reminder_date,
            status=compute_urgency(data.reminder_date, today).value,
            is_read=False,
            is_acknowledged=False,
            notes=data.notes,
        )
        await self._insert(reminder)
        logger.info(f"Reminder created for {caterer.name}: {data.amount} on {data.reminder_date}")
        return reminder

    async def update_reminder(
        self,
        reminder_id: uuid.UUID,
        data: PaymentReminderUpdate,
        today: Optional[date] = None,
    ) -> PaymentReminder:
        reminder = await self.get_reminder(reminder_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("amount") is not None:
            changes["amount"] = to_money(changes["amount"], "amount")
        for field, value in changes.items():
            setattr(reminder, field, value)
        reminder.status = compute_urgency(reminder.reminder_date, today or date.today()).value
        await self.db.flush()
        return reminder

    async def mark_as_read(self, reminder_id: uuid.UUID) -> PaymentReminder:
        reminder = await self.get_reminder(reminder_id)
        reminder.is_read = True
        await self.db.flush()
        return reminder

    async def acknowledge(
        self,
        reminder_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> PaymentReminder:
        """Silence notifications for this reminder for the acknowledgement window."""
        reminder = await self.get_reminder(reminder_id)
        reminder.is_acknowledged = True
        reminder.acknowledged_at = now or datetime.now(timezone.utc)
        await self.db.flush()
        return reminder

    async def delete_reminder(self, reminder_id: uuid.UUID) -> None:
        reminder = await self.get_reminder(reminder_id)
        await self.db.delete(reminder)
        await self.db.flush()
        logger.info(f"Reminder {reminder_id} deleted")

    async def set_next_reminder_date(
        self,
        reminder_id: uuid.UUID,
        next_reminder_date: date,
    ) -> PaymentReminder:
        reminder = await self.get_reminder(reminder_id)
        reminder.next_reminder_date = next_reminder_date
        await self.db.flush()
        return reminder

    async def promote_distribution_reminder(
        self,
        distribution_id: uuid.UUID,
        next_reminder_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> PaymentReminder:
        """
        Turn the synthesized reminder of a bill into a stored row, e.g. to
        snooze it. Refused when the bill already has a row or nothing is due.
        """
        today = today or date.today()
        distribution = await self.db.get(Distribution, distribution_id)
        if not distribution:
            raise NotFoundError("Distribution", distribution_id)
        if not is_collectible(distribution):
            raise ValidationError(
                f"Bill {distribution.bill_no} has nothing left to collect",
                {"distribution_id": str(distribution.id), "status": distribution.status},
            )
        await self._ensure_no_reminder_for(distribution.id)

        synthesized = SynthesizedReminder.from_distribution(distribution, today)
        reminder = PaymentReminder(
            **promote(synthesized, next_reminder_date),
            is_read=False,
            is_acknowledged=False,
        )
        await self._insert(reminder)
        logger.info(f"Reminder for bill {distribution.bill_no} promoted to a stored reminder")
        return reminder

    async def refresh_statuses(self, today: Optional[date] = None) -> int:
        """Rewrite stored reminder status from today's urgency. Returns the number changed."""
        today = today or date.today()
        changed = 0
        for reminder in await self._reminder_rows():
            status = compute_urgency(reminder.reminder_date, today).value
            if reminder.status != status:
                reminder.status = status
                changed += 1
        if changed:
            await self.db.flush()
        return changed
