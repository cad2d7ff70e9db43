import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from spice_ledger.core.exceptions import (
    NotFoundError,
    OverpaymentError,
    RelatedRecordsError,
    ValidationError,
)
from spice_ledger.models import CatererPayment, Distribution
from spice_ledger.schemas.distribution import DistributionCreate, DistributionItemCreate
from spice_ledger.services.billing_ledger import BillingLedgerService
from spice_ledger.services.distribution_service import DistributionService
from spice_ledger.services.gst_calculator import calculate_line, calculate_totals, round2
from spice_ledger.services.reminder_service import ReminderService

from tests.conftest import TODAY


def bill_in(caterer_id, items, **kwargs):
    return DistributionCreate(
        caterer_id=caterer_id,
        distribution_date=kwargs.pop("distribution_date", TODAY),
        items=[DistributionItemCreate(**item) for item in items],
        **kwargs,
    )


class TestCreateDistribution:
    async def test_computes_lines_and_totals(self, db, caterer):
        distribution = await DistributionService(db).create_distribution(
            bill_in(caterer.id, [
                {"item_name": "Chilli Powder", "quantity": "2", "rate": "100", "gst_percentage": "5"},
                {"item_name": "Cumin", "quantity": "1.5", "rate": "80", "gst_percentage": "12"},
            ]),
            today=TODAY,
        )

        assert [item.amount for item in distribution.items] == [Decimal("200.00"), Decimal("120.00")]
        assert [item.gst_amount for item in distribution.items] == [Decimal("10.00"), Decimal("14.40")]
        assert distribution.total_amount == Decimal("320.00")
        assert distribution.total_gst_amount == Decimal("24.40")
        assert distribution.grand_total == Decimal("344.40")
        assert distribution.balance_due == Decimal("344.40")
        assert distribution.status == "active"

    async def test_submitted_amounts_are_recomputed(self, db, caterer):
        distribution = await DistributionService(db).create_distribution(
            bill_in(caterer.id, [{
                "item_name": "Pepper", "quantity": "2", "rate": "100",
                "gst_percentage": "5", "amount": "999", "gst_amount": "1",
            }]),
            today=TODAY,
        )
        assert distribution.items[0].amount == Decimal("200.00")
        assert distribution.items[0].gst_amount == Decimal("10.00")

    async def test_initial_payment_goes_through_ledger(self, db, caterer):
        distribution = await DistributionService(db).create_distribution(
            bill_in(caterer.id, [{"item_name": "Garam Masala", "quantity": "1", "rate": "1000"}],
                    amount_paid=Decimal("400"), payment_mode="upi"),
            today=TODAY,
        )
        await db.commit()

        assert distribution.amount_paid == Decimal("400.00")
        assert distribution.balance_due == Decimal("600.00")
        assert distribution.status == "partial"

        payment = (await db.execute(
            select(CatererPayment).where(CatererPayment.distribution_id == distribution.id)
        )).scalar_one()
        assert payment.amount == Decimal("400.00")
        assert payment.payment_mode == "upi"
        assert payment.notes == f"Payment for bill {distribution.bill_no}"

        await db.refresh(caterer)
        assert caterer.total_billed == Decimal("1000.00")
        assert caterer.total_paid == Decimal("400.00")
        assert caterer.balance_due == Decimal("600.00")
        assert caterer.total_orders == 1

    async def test_paid_at_delivery(self, make_bill):
        distribution = await make_bill(rate="500", amount_paid="500")
        assert distribution.status == "paid"
        assert distribution.balance_due == Decimal("0.00")

    async def test_initial_overpayment_is_refused(self, db, caterer):
        with pytest.raises(OverpaymentError):
            await DistributionService(db).create_distribution(
                bill_in(caterer.id, [{"item_name": "Clove", "quantity": "1", "rate": "100"}],
                        amount_paid=Decimal("100.01")),
                today=TODAY,
            )

    async def test_past_bill_is_overdue(self, make_bill, days):
        distribution = await make_bill(distribution_date=days(-10))
        assert distribution.status == "overdue"

    async def test_future_bill_is_pending(self, make_bill, days):
        distribution = await make_bill(distribution_date=days(2))
        assert distribution.status == "pending"

    async def test_unknown_caterer(self, db, caterer):
        with pytest.raises(NotFoundError):
            await DistributionService(db).create_distribution(
                bill_in(uuid.uuid4(), [{"item_name": "Clove", "quantity": "1", "rate": "1"}]),
            )

    async def test_bill_numbers_are_sequential_per_day(self, make_bill):
        first = await make_bill()
        second = await make_bill()
        assert first.bill_no == "CB-20240115-001"
        assert second.bill_no == "CB-20240115-002"

    async def test_duplicate_explicit_bill_number(self, db, caterer):
        service = DistributionService(db)
        items = [{"item_name": "Clove", "quantity": "1", "rate": "10"}]
        await service.create_distribution(bill_in(caterer.id, items, bill_no="INV-1"), today=TODAY)
        with pytest.raises(ValidationError):
            await service.create_distribution(bill_in(caterer.id, items, bill_no="INV-1"), today=TODAY)

    async def test_bill_number_taken_after_the_check(self, db, caterer, make_bill, monkeypatch):
        taken = await make_bill()

        async def number_looks_free(self, bill_no):
            return False

        monkeypatch.setattr(DistributionService, "_bill_number_exists", number_looks_free)
        items = [{"item_name": "Clove", "quantity": "1", "rate": "10"}]
        with pytest.raises(ValidationError):
            await DistributionService(db).create_distribution(
                bill_in(caterer.id, items, bill_no=taken.bill_no), today=TODAY
            )

        count = (await db.execute(select(func.count()).select_from(Distribution))).scalar()
        assert count == 1

    @pytest.mark.parametrize("quantity, rate", [("3", "33.335"), ("0.0004", "250000")])
    async def test_line_precision_beyond_storage_is_refused(self, db, caterer, quantity, rate):
        items = [{"item_name": "Cardamom", "quantity": quantity, "rate": rate}]
        with pytest.raises(ValidationError):
            await DistributionService(db).create_distribution(bill_in(caterer.id, items), today=TODAY)

    async def test_stored_lines_reproduce_their_amounts(self, db, caterer):
        items = [{"item_name": "Cardamom", "quantity": "2.125", "rate": "33.34", "gst_percentage": "5"}]
        bill = await DistributionService(db).create_distribution(bill_in(caterer.id, items), today=TODAY)
        await db.commit()
        db.expire_all()

        stored = await DistributionService(db).get_distribution(bill.id)
        line = stored.items[0]
        assert line.amount == round2(line.quantity * line.rate)
        recomputed = calculate_line(line.quantity, line.rate, line.gst_percentage)
        assert stored.grand_total == calculate_totals([recomputed]).grand_total


class TestStatusUpdates:
    async def test_cancel_removes_bill_from_caterer_totals(self, db, caterer, make_bill):
        keep = await make_bill(rate="300")
        cancel = await make_bill(rate="700")

        updated = await DistributionService(db).update_status(cancel.id, "cancelled", today=TODAY)
        await db.commit()
        await db.refresh(caterer)

        assert updated.status == "cancelled"
        assert caterer.total_billed == keep.grand_total
        assert caterer.balance_due == Decimal("300.00")
        assert caterer.total_orders == 1

    async def test_cancelled_bill_stays_cancelled(self, db, make_bill):
        distribution = await make_bill()
        service = DistributionService(db)
        await service.update_status(distribution.id, "cancelled", today=TODAY)
        with pytest.raises(ValidationError):
            await service.update_status(distribution.id, "active", today=TODAY)

    async def test_cannot_mark_unpaid_bill_paid(self, db, make_bill):
        distribution = await make_bill()
        with pytest.raises(ValidationError):
            await DistributionService(db).update_status(distribution.id, "paid", today=TODAY)

    async def test_cannot_cancel_paid_bill(self, db, make_bill):
        distribution = await make_bill(rate="100", amount_paid="100")
        with pytest.raises(ValidationError):
            await DistributionService(db).update_status(distribution.id, "cancelled", today=TODAY)

    async def test_refresh_moves_bills_with_the_calendar(self, db, make_bill, days):
        distribution = await make_bill(distribution_date=days(1))
        assert distribution.status == "pending"

        service = DistributionService(db)
        assert await service.refresh_statuses(today=days(1)) == 1
        assert distribution.status == "active"
        assert await service.refresh_statuses(today=days(3)) == 1
        assert distribution.status == "overdue"
        assert await service.refresh_statuses(today=days(3)) == 0

    async def test_refresh_keeps_partial(self, db, make_bill, days):
        distribution = await make_bill(amount_paid="10")
        assert await DistributionService(db).refresh_statuses(today=days(30)) == 0
        assert distribution.status == "partial"


class TestDeleteDistribution:
    async def test_payments_block_delete(self, db, make_bill):
        distribution = await make_bill(amount_paid="100")
        with pytest.raises(RelatedRecordsError) as exc_info:
            await DistributionService(db).delete_distribution(distribution.id)
        assert exc_info.value.details["related_records"]["payments"] == 1

    async def test_cascade_removes_payments_and_resyncs(self, db, caterer, make_bill):
        distribution = await make_bill(amount_paid="100")
        await DistributionService(db).delete_distribution(distribution.id, cascade=True)
        await db.commit()

        assert (await db.execute(select(CatererPayment))).scalars().all() == []
        await db.refresh(caterer)
        assert caterer.total_billed == Decimal("0")
        assert caterer.total_paid == Decimal("0")
        assert caterer.total_orders == 0

    async def test_reminders_are_detached(self, db, make_bill, days):
        distribution = await make_bill(distribution_date=days(-1))
        reminder = await ReminderService(db).promote_distribution_reminder(distribution.id, today=TODAY)
        await DistributionService(db).delete_distribution(distribution.id)
        await db.commit()

        await db.refresh(reminder)
        assert reminder.distribution_id is None

    async def test_get_deleted_distribution(self, db, make_bill):
        distribution = await make_bill()
        service = DistributionService(db)
        await service.delete_distribution(distribution.id)
        with pytest.raises(NotFoundError):
            await service.get_distribution(distribution.id)


class TestListAndSummary:
    async def test_filters(self, db, caterer, make_bill, days):
        await make_bill(distribution_date=days(-5))
        await make_bill(amount_paid="10")
        service = DistributionService(db)

        _, total = await service.list_distributions(caterer_id=caterer.id)
        assert total == 2
        overdue, total = await service.list_distributions(status="OVERDUE")
        assert total == 1
        assert overdue[0].status == "overdue"

    async def test_unknown_status_filter(self, db):
        with pytest.raises(ValidationError):
            await DistributionService(db).list_distributions(status="late")

    async def test_summary(self, db, make_bill, days):
        await make_bill(rate="1000", amount_paid="400", distribution_date=days(-10))
        await make_bill(rate="500", distribution_date=days(1))
        cancelled = await make_bill(rate="200")
        service = DistributionService(db)
        await service.update_status(cancelled.id, "cancelled", today=TODAY)

        summary = await service.summarize(today=TODAY)
        assert summary.total_bills == 2
        assert summary.total_amount == Decimal("1500.00")
        assert summary.total_paid == Decimal("400.00")
        assert summary.total_due == Decimal("1100.00")
        assert summary.overdue_bills == 1
        assert summary.overdue_amount == Decimal("600.00")

    async def test_payments_on_listed_bill(self, db, make_bill):
        distribution = await make_bill(rate="100")
        await BillingLedgerService(db).apply_payment(distribution.id, "100", today=TODAY)
        paid, total = await DistributionService(db).list_distributions(status="paid")
        assert total == 1
        assert paid[0].id == distribution.id
