"""
Distribution status derivation.

Precedence, first match wins:
    cancelled  explicitly cancelled (terminal)
    paid       amount_paid >= grand_total (terminal)
    partial    0 < amount_paid < grand_total
    overdue    unpaid and the due date (or distribution date) is before today
    active     unpaid and due today
    pending    unpaid and due in the future
"""
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

from spice_ledger.core.exceptions import ValidationError
from spice_ledger.models.distribution import DistributionStatus
from spice_ledger.services.gst_calculator import round2, to_decimal, ZERO


TERMINAL_STATUSES = frozenset({DistributionStatus.PAID, DistributionStatus.CANCELLED})

# Forward-only moves; anything not listed is refused.
ALLOWED_TRANSITIONS = {
    DistributionStatus.PENDING: {
        DistributionStatus.ACTIVE,
        DistributionStatus.OVERDUE,
        DistributionStatus.PARTIAL,
        DistributionStatus.PAID,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.ACTIVE: {
        DistributionStatus.OVERDUE,
        DistributionStatus.PARTIAL,
        DistributionStatus.PAID,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.OVERDUE: {
        DistributionStatus.PARTIAL,
        DistributionStatus.PAID,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.PARTIAL: {
        DistributionStatus.PAID,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.PAID: set(),
    DistributionStatus.CANCELLED: set(),
}


# Statuses a bill can still leave through payment or the calendar
OPEN_STATUS_VALUES = tuple(
    s.value for s in (
        DistributionStatus.PENDING,
        DistributionStatus.ACTIVE,
        DistributionStatus.PARTIAL,
        DistributionStatus.OVERDUE,
    )
)


def parse_status(value: Union[str, DistributionStatus]) -> DistributionStatus:
    """Parse a stored or submitted status, raising ValidationError if unknown."""
    if isinstance(value, DistributionStatus):
        return value
    try:
        return DistributionStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown distribution status: {value!r}", {"status": value})


def derive_status(
    grand_total: Any,
    amount_paid: Any,
    distribution_date: date,
    explicit_cancel: bool = False,
    *,
    due_date: Optional[date] = None,
    today: Optional[date] = None,
) -> DistributionStatus:
    """Derive a distribution's status from its ledger state and dates."""
    if explicit_cancel:
        return DistributionStatus.CANCELLED

    total = round2(to_decimal(grand_total, "grand_total"))
    paid = round2(to_decimal(amount_paid, "amount_paid"))

    if paid >= total:
        return DistributionStatus.PAID
    if paid > ZERO:
        return DistributionStatus.PARTIAL

    today = today or date.today()
    reference_date = due_date or distribution_date
    if reference_date < today:
        return DistributionStatus.OVERDUE
    if reference_date == today:
        return DistributionStatus.ACTIVE
    return DistributionStatus.PENDING


def derive_status_for(distribution, today: Optional[date] = None) -> DistributionStatus:
    """derive_status() over a Distribution row, keeping a stored cancellation."""
    return derive_status(
        distribution.grand_total,
        distribution.amount_paid,
        distribution.distribution_date,
        distribution.status == DistributionStatus.CANCELLED.value,
        due_date=distribution.due_date,
        today=today,
    )


def can_transition(
    current: Union[str, DistributionStatus],
    target: Union[str, DistributionStatus],
) -> bool:
    """True if a distribution may move from current to target."""
    current = parse_status(current)
    target = parse_status(target)
    if current == target:
        return current not in TERMINAL_STATUSES
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(
    current: Union[str, DistributionStatus],
    target: Union[str, DistributionStatus],
    derived: Optional[DistributionStatus] = None,
) -> DistributionStatus:
    """
    Validate an explicit status change.

    Cancellation is the only move a caller may request freely. Any other
    target must equal the status derived from the ledger.

    Raises:
        ValidationError: if the move is refused.
    """
    current = parse_status(current)
    target = parse_status(target)

    if not can_transition(current, target):
        raise ValidationError(
            f"Cannot change status from {current.value} to {target.value}",
            {"current": current.value, "target": target.value},
        )

    if target != DistributionStatus.CANCELLED and derived is not None and target != derived:
        raise ValidationError(
            f"Status {target.value} does not match ledger state ({derived.value})",
            {"current": current.value, "target": target.value, "derived": derived.value},
        )
    return target


def is_settled(balance_due: Decimal, status: DistributionStatus) -> bool:
    """A bill needs no further collection when paid, cancelled or zero balance."""
    return status in TERMINAL_STATUSES or round2(balance_due) <= ZERO
