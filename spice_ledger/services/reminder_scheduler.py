"""
Payment reminder scheduling.

A reminder is either persisted (a PaymentReminder row) or synthesized on the
fly from a distribution that still has a balance and no row of its own. The
two are separate types tagged by ``kind``; ``promote()`` turns a synthesized
reminder into the payload for a new row.

Urgency is a calendar-date comparison against today:

    reminder_date <  today                  overdue
    reminder_date == today                  due_today
    reminder_date <  today + upcoming_days  upcoming
    otherwise                               pending

Synthesized reminders use the bill's due date (or distribution date) with
the same function.

Notification dedup state is explicit: callers own a NotificationState and
pass it in. Each urgent reminder is announced once per state lifetime.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from spice_ledger.config import settings
from spice_ledger.models.distribution import Distribution
from spice_ledger.models.payment_reminder import PaymentReminder, ReminderStatus
from spice_ledger.services.gst_calculator import round2, to_decimal
from spice_ledger.services.status_engine import is_settled, parse_status


class ReminderKind(str, Enum):
    SYNTHESIZED = "synthesized"
    PERSISTED = "persisted"


def as_date(value: Union[date, datetime]) -> date:
    """Drop the time-of-day part."""
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_urgency(
    reminder_date: Union[date, datetime],
    today: Union[date, datetime],
    upcoming_days: Optional[int] = None,
) -> ReminderStatus:
    """Classify a reminder date against today."""
    if upcoming_days is None:
        upcoming_days = settings.REMINDER_UPCOMING_DAYS

    reminder_day = as_date(reminder_date)
    today = as_date(today)

    if reminder_day < today:
        return ReminderStatus.OVERDUE
    if reminder_day == today:
        return ReminderStatus.DUE_TODAY
    if reminder_day < today + timedelta(days=upcoming_days):
        return ReminderStatus.UPCOMING
    return ReminderStatus.PENDING


@dataclass(frozen=True)
class SynthesizedReminder:
    """Reminder derived from a distribution that has no reminder row."""
    distribution_id: uuid.UUID
    caterer_id: uuid.UUID
    bill_no: str
    amount: Decimal
    reminder_date: date
    status: ReminderStatus
    distribution_status: str
    kind: ReminderKind = ReminderKind.SYNTHESIZED

    # Synthesized reminders are never read, acknowledged or snoozed.
    is_read: bool = False
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    next_reminder_date: Optional[date] = None

    @property
    def key(self) -> str:
        return f"dist-{self.distribution_id}"

    @property
    def notes(self) -> str:
        return f"Bill {self.bill_no} - {self.distribution_status}"

    @classmethod
    def from_distribution(cls, distribution: Distribution, today: date) -> "SynthesizedReminder":
        reminder_date = as_date(distribution.due_date or distribution.distribution_date)
        return cls(
            distribution_id=distribution.id,
            caterer_id=distribution.caterer_id,
            bill_no=distribution.bill_no,
            amount=round2(to_decimal(distribution.balance_due, "balance_due")),
            reminder_date=reminder_date,
            status=compute_urgency(reminder_date, today),
            distribution_status=distribution.status,
        )


@dataclass(frozen=True)
class PersistedReminder:
    """Reminder backed by a PaymentReminder row."""
    id: uuid.UUID
    caterer_id: uuid.UUID
    distribution_id: Optional[uuid.UUID]
    amount: Decimal
    original_due_date: date
    reminder_date: date
    status: ReminderStatus
    next_reminder_date: Optional[date] = None
    is_read: bool = False
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None
    kind: ReminderKind = ReminderKind.PERSISTED

    @property
    def key(self) -> str:
        return str(self.id)

    @classmethod
    def from_model(cls, row: PaymentReminder, today: date) -> "PersistedReminder":
        return cls(
            id=row.id,
            caterer_id=row.caterer_id,
            distribution_id=row.distribution_id,
            amount=round2(to_decimal(row.amount, "amount")),
            original_due_date=as_date(row.original_due_date),
            reminder_date=as_date(row.reminder_date),
            status=compute_urgency(row.reminder_date, today),
            next_reminder_date=as_date(row.next_reminder_date) if row.next_reminder_date else None,
            is_read=bool(row.is_read),
            is_acknowledged=bool(row.is_acknowledged),
            acknowledged_at=row.acknowledged_at,
            notes=row.notes,
        )


Reminder = Union[SynthesizedReminder, PersistedReminder]


def promote(reminder: SynthesizedReminder, next_reminder_date: Optional[date] = None) -> dict:
    """Creation payload for a PaymentReminder row replacing a synthesized reminder."""
    return {
        "caterer_id": reminder.caterer_id,
        "distribution_id": reminder.distribution_id,
        "amount": reminder.amount,
        "original_due_date": reminder.reminder_date,
        "reminder_date": reminder.reminder_date,
        "next_reminder_date": next_reminder_date,
        "status": reminder.status.value,
        "notes": reminder.notes,
    }


def is_collectible(distribution: Distribution) -> bool:
    """Not cancelled, not paid and still carrying a balance."""
    status = parse_status(distribution.status)
    return not is_settled(to_decimal(distribution.balance_due, "balance_due"), status)


def is_snoozed(reminder: Reminder, today: date) -> bool:
    return reminder.next_reminder_date is not None and as_date(reminder.next_reminder_date) > as_date(today)


def build_reminders(
    distributions: Iterable[Distribution],
    persisted: Iterable[PaymentReminder],
    today: date,
) -> List[Reminder]:
    """
    Merge persisted reminder rows with reminders synthesized from open bills.

    - Rows pointing at a missing, paid or cancelled bill (or one with no
      balance) are dropped.
    - Caterer-level rows (no bill) survive while that caterer has an open bill.
    - Snoozed rows hide the reminder but still block synthesis for their bill.
    - At most one reminder per distribution.
    """
    today = as_date(today)
    open_bills: Dict[uuid.UUID, Distribution] = {
        d.id: d for d in distributions if is_collectible(d)
    }
    caterers_with_open_bills = {d.caterer_id for d in open_bills.values()}

    rows = list(persisted)
    covered: Set[uuid.UUID] = {r.distribution_id for r in rows if r.distribution_id is not None}

    reminders: List[Reminder] = []
    emitted: Set[uuid.UUID] = set()

    for row in rows:
        if row.distribution_id is not None:
            if row.distribution_id not in open_bills or row.distribution_id in emitted:
                continue
        elif row.caterer_id not in caterers_with_open_bills:
            continue

        reminder = PersistedReminder.from_model(row, today)
        if is_snoozed(reminder, today):
            continue

        if row.distribution_id is not None:
            emitted.add(row.distribution_id)
        reminders.append(reminder)

    for distribution in open_bills.values():
        if distribution.id in covered:
            continue
        reminders.append(SynthesizedReminder.from_distribution(distribution, today))

    reminders.sort(key=lambda r: (r.reminder_date, r.key))
    return reminders


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_urgent(
    reminder: Reminder,
    today: date,
    now: Optional[datetime] = None,
    upcoming_days: Optional[int] = None,
    ack_snooze_hours: Optional[int] = None,
) -> bool:
    """Unread, not snoozed, not freshly acknowledged and due within the upcoming window."""
    if upcoming_days is None:
        upcoming_days = settings.REMINDER_UPCOMING_DAYS
    if ack_snooze_hours is None:
        ack_snooze_hours = settings.REMINDER_ACK_SNOOZE_HOURS

    today = as_date(today)
    if reminder.is_read or is_snoozed(reminder, today):
        return False

    if reminder.is_acknowledged and reminder.acknowledged_at is not None:
        now = _as_utc(now or datetime.now(timezone.utc))
        if now - _as_utc(reminder.acknowledged_at) < timedelta(hours=ack_snooze_hours):
            return False

    return as_date(reminder.reminder_date) < today + timedelta(days=upcoming_days)


@dataclass
class NotificationState:
    """Reminder keys already announced. Create empty, discard on teardown."""
    seen: Set[str] = field(default_factory=set)

    def claim(self, key: str) -> bool:
        """Mark key as announced; False if it already was."""
        if key in self.seen:
            return False
        self.seen.add(key)
        return True

    def clear(self) -> None:
        self.seen.clear()


@dataclass(frozen=True)
class Notification:
    key: str
    kind: ReminderKind
    caterer_id: uuid.UUID
    distribution_id: Optional[uuid.UUID]
    amount: Decimal
    reminder_date: date
    urgency: ReminderStatus
    priority: str
    title: str
    description: str
    is_overdue: bool


def describe_due(reminder_date: date, today: date) -> str:
    days = (as_date(reminder_date) - as_date(today)).days
    if days < 0:
        return "overdue"
    if days == 0:
        return "due today"
    if days == 1:
        return "due tomorrow"
    return f"due in {days} days"


def build_notification(
    reminder: Reminder,
    today: date,
    caterer_name: Optional[str] = None,
) -> Notification:
    today = as_date(today)
    reminder_date = as_date(reminder.reminder_date)
    urgency = compute_urgency(reminder_date, today)
    who = caterer_name or "Caterer"
    return Notification(
        key=reminder.key,
        kind=reminder.kind,
        caterer_id=reminder.caterer_id,
        distribution_id=reminder.distribution_id,
        amount=reminder.amount,
        reminder_date=reminder_date,
        urgency=urgency,
        priority="high" if reminder_date <= today else "medium",
        title="Payment Reminder",
        description=f"{who} - ₹{reminder.amount:,} {describe_due(reminder_date, today)}",
        is_overdue=urgency == ReminderStatus.OVERDUE,
    )


def urgent_notifications(
    reminders: Iterable[Reminder],
    today: date,
    now: Optional[datetime] = None,
    caterer_names: Optional[Mapping[uuid.UUID, str]] = None,
) -> List[Notification]:
    """Every currently urgent reminder as a notification, without dedup."""
    names = caterer_names or {}
    return [
        build_notification(r, today, names.get(r.caterer_id))
        for r in reminders
        if is_urgent(r, today, now)
    ]


def collect_notifications(
    reminders: Iterable[Reminder],
    state: NotificationState,
    today: date,
    now: Optional[datetime] = None,
    caterer_names: Optional[Mapping[uuid.UUID, str]] = None,
) -> List[Notification]:
    """Urgent reminders not yet announced under this state; claims them."""
    return [
        n for n in urgent_notifications(reminders, today, now, caterer_names)
        if state.claim(n.key)
    ]
