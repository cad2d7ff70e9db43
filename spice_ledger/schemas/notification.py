"""Pydantic schemas for the reminder notification feed."""
from datetime import date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    key: str
    kind: str
    caterer_id: UUID
    distribution_id: Optional[UUID] = None
    amount: Decimal
    reminder_date: date
    urgency: str
    priority: str
    title: str
    description: str
    is_overdue: bool


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int


def notification_view(notification) -> NotificationResponse:
    """Render a scheduler Notification with plain string enums."""
    return NotificationResponse(
        key=notification.key,
        kind=notification.kind.value,
        caterer_id=notification.caterer_id,
        distribution_id=notification.distribution_id,
        amount=notification.amount,
        reminder_date=notification.reminder_date,
        urgency=notification.urgency.value,
        priority=notification.priority,
        title=notification.title,
        description=notification.description,
        is_overdue=notification.is_overdue,
    )
