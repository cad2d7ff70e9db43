"""API endpoints for payment reminders."""
from uuid import UUID

from fastapi import APIRouter, Response, status

from spice_ledger.api.deps import DB, CurrentUser
from spice_ledger.schemas.reminder import (
    NextReminderRequest,
    PaymentReminderCreate,
    PaymentReminderResponse,
    PaymentReminderUpdate,
    PersistedReminderView,
    PromoteReminderRequest,
    ReminderListResponse,
    SynthesizedReminderView,
)
from spice_ledger.services.reminder_scheduler import PersistedReminder, Reminder
from spice_ledger.services.reminder_service import ReminderService


router = APIRouter()


def reminder_view(reminder: Reminder):
    if isinstance(reminder, PersistedReminder):
        return PersistedReminderView(
            key=reminder.key,
            id=reminder.id,
            caterer_id=reminder.caterer_id,
            distribution_id=reminder.distribution_id,
            amount=reminder.amount,
            original_due_date=reminder.original_due_date,
            reminder_date=reminder.reminder_date,
            next_reminder_date=reminder.next_reminder_date,
            status=reminder.status.value,
            is_read=reminder.is_read,
            is_acknowledged=reminder.is_acknowledged,
            acknowledged_at=reminder.acknowledged_at,
            notes=reminder.notes,
        )
    return SynthesizedReminderView(
        key=reminder.key,
        caterer_id=reminder.caterer_id,
        distribution_id=reminder.distribution_id,
        bill_no=reminder.bill_no,
        amount=reminder.amount,
        reminder_date=reminder.reminder_date,
        status=reminder.status.value,
        distribution_status=reminder.distribution_status,
        notes=reminder.notes,
    )


@router.get("", response_model=ReminderListResponse)
async def list_reminders(
    db: DB,
    current_user: CurrentUser,
):
    """
    Current reminders, soonest first.

    Stored reminders are merged with one synthesized reminder per unpaid
    bill that has no stored reminder. Snoozed reminders are left out.
    """
    reminders = await ReminderService(db).list_reminders()
    return ReminderListResponse(
        items=[reminder_view(r) for r in reminders],
        total=len(reminders),
    )


@router.post("", response_model=PaymentReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    reminder_in: PaymentReminderCreate,
    db: DB,
    current_user: CurrentUser,
):
    reminder = await ReminderService(db).create_reminder(reminder_in)
    await db.commit()
    return reminder


@router.post("/promote", response_model=PaymentReminderResponse, status_code=status.HTTP_201_CREATED)
async def promote_reminder(
    promote_in: PromoteReminderRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Store the synthesized reminder of a bill so it can be read, acknowledged or snoozed."""
    reminder = await ReminderService(db).promote_distribution_reminder(
        promote_in.distribution_id,
        promote_in.next_reminder_date,
    )
    await db.commit()
    return reminder


@router.get("/{reminder_id}", response_model=PaymentReminderResponse)
async def get_reminder(
    reminder_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await ReminderService(db).get_reminder(reminder_id)


@router.patch("/{reminder_id}", response_model=PaymentReminderResponse)
async def update_reminder(
    reminder_id: UUID,
    reminder_in: PaymentReminderUpdate,
    db: DB,
    current_user: CurrentUser,
):
    reminder = await ReminderService(db).update_reminder(reminder_id, reminder_in)
    await db.commit()
    return reminder


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder(
    reminder_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Delete a stored reminder. The bill is left untouched."""
    await ReminderService(db).delete_reminder(reminder_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{reminder_id}/read", response_model=PaymentReminderResponse)
async def mark_reminder_read(
    reminder_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    reminder = await ReminderService(db).mark_as_read(reminder_id)
    await db.commit()
    return reminder


@router.post("/{reminder_id}/acknowledge", response_model=PaymentReminderResponse)
async def acknowledge_reminder(
    reminder_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    """Silence notifications for this reminder for a while."""
    reminder = await ReminderService(db).acknowledge(reminder_id)
    await db.commit()
    return reminder


@router.post("/{reminder_id}/next-reminder", response_model=PaymentReminderResponse)
async def set_next_reminder(
    reminder_id: UUID,
    next_in: NextReminderRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Snooze a reminder until the given date."""
    reminder = await ReminderService(db).set_next_reminder_date(
        reminder_id, next_in.next_reminder_date
    )
    await db.commit()
    return reminder
