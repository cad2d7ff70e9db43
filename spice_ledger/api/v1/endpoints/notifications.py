"""Reminder notification feed."""
from fastapi import APIRouter

from spice_ledger.api.deps import DB, CurrentUser, Notifications
from spice_ledger.schemas.notification import NotificationListResponse, notification_view
from spice_ledger.services.reminder_service import ReminderService


router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: DB,
    current_user: CurrentUser,
):
    """Every reminder that is urgent right now."""
    notifications = await ReminderService(db).notifications()
    return NotificationListResponse(
        items=[notification_view(n) for n in notifications],
        total=len(notifications),
    )


@router.get("/new", response_model=NotificationListResponse)
async def new_notifications(
    db: DB,
    current_user: CurrentUser,
    state: Notifications,
):
    """
    Urgent reminders not announced before.

    Each reminder is returned once per process lifetime; later polls skip it.
    """
    notifications = await ReminderService(db).notifications(state=state)
    return NotificationListResponse(
        items=[notification_view(n) for n in notifications],
        total=len(notifications),
    )
