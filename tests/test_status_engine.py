from datetime import date, timedelta
from decimal import Decimal

import pytest

from spice_ledger.core.exceptions import ValidationError
from spice_ledger.models.distribution import DistributionStatus as S
from spice_ledger.services.status_engine import (
    can_transition,
    derive_status,
    ensure_transition,
    is_settled,
    parse_status,
)


TODAY = date(2024, 1, 15)


class TestDeriveStatus:
    def test_partial_payment(self):
        assert derive_status("1000", "400", TODAY, today=TODAY) == S.PARTIAL

    def test_paid_in_full(self):
        assert derive_status("500", "500", TODAY, today=TODAY) == S.PAID

    def test_unpaid_past_date_is_overdue(self):
        assert derive_status("500", "0", TODAY - timedelta(days=10), today=TODAY) == S.OVERDUE

    def test_unpaid_today_is_active(self):
        assert derive_status("500", "0", TODAY, today=TODAY) == S.ACTIVE

    def test_unpaid_future_is_pending(self):
        assert derive_status("500", "0", TODAY + timedelta(days=3), today=TODAY) == S.PENDING

    def test_due_date_wins_over_distribution_date(self):
        status = derive_status(
            "500", "0", TODAY - timedelta(days=10),
            due_date=TODAY + timedelta(days=5), today=TODAY,
        )
        assert status == S.PENDING

    def test_cancel_beats_everything(self):
        assert derive_status("500", "500", TODAY, True, today=TODAY) == S.CANCELLED

    def test_paid_beats_overdue(self):
        assert derive_status("500", "500", TODAY - timedelta(days=30), today=TODAY) == S.PAID

    def test_partial_beats_overdue(self):
        assert derive_status("500", "1", TODAY - timedelta(days=30), today=TODAY) == S.PARTIAL

    def test_compares_rounded_amounts(self):
        assert derive_status("100.004", "100", TODAY, today=TODAY) == S.PAID

    def test_rejects_non_numeric_totals(self):
        with pytest.raises(ValidationError):
            derive_status("abc", "0", TODAY, today=TODAY)


class TestTransitions:
    @pytest.mark.parametrize("terminal", [S.PAID, S.CANCELLED])
    def test_terminal_statuses_are_final(self, terminal):
        for target in S:
            assert not can_transition(terminal, target)

    def test_moves_forward_only(self):
        assert can_transition(S.PENDING, S.OVERDUE)
        assert can_transition(S.PARTIAL, S.PAID)
        assert not can_transition(S.PARTIAL, S.PENDING)
        assert not can_transition(S.OVERDUE, S.ACTIVE)

    def test_open_status_may_stay(self):
        assert can_transition(S.PARTIAL, S.PARTIAL)

    def test_cancel_allowed_from_open_statuses(self):
        for current in (S.PENDING, S.ACTIVE, S.OVERDUE, S.PARTIAL):
            assert ensure_transition(current, "cancelled", derived=S.PARTIAL) == S.CANCELLED

    def test_paid_bill_cannot_be_cancelled(self):
        with pytest.raises(ValidationError):
            ensure_transition(S.PAID, S.CANCELLED)

    def test_target_must_match_ledger(self):
        with pytest.raises(ValidationError) as exc_info:
            ensure_transition(S.PENDING, S.PAID, derived=S.PENDING)
        assert exc_info.value.details["derived"] == "pending"

    def test_target_matching_ledger_is_accepted(self):
        assert ensure_transition(S.PENDING, "OVERDUE", derived=S.OVERDUE) == S.OVERDUE

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            parse_status("settled")


class TestIsSettled:
    def test_zero_balance(self):
        assert is_settled(Decimal("0"), S.PARTIAL)

    def test_terminal_status(self):
        assert is_settled(Decimal("100"), S.CANCELLED)

    def test_open_balance(self):
        assert not is_settled(Decimal("0.01"), S.OVERDUE)
