"""
Payment Reminder Refresh Job.

Once a day:
- re-derives date-driven bill statuses (pending -> active -> overdue)
- rewrites stored reminder urgency for the new day
- reports the urgent reminders and the overdue total

Triggers:
- Daily scheduled job (via APScheduler) at REMINDER_REFRESH_HOUR local time
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.config import settings
from spice_ledger.core.exceptions import LedgerError
from spice_ledger.models.payment_reminder import ReminderStatus
from spice_ledger.services.distribution_service import DistributionService
from spice_ledger.services.reminder_service import ReminderService

logger = logging.getLogger(__name__)


async def run_payment_reminder_job(
    db: AsyncSession,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Refresh bill statuses and reminder urgency.

    Returns:
        Summary of what changed and what is urgent
    """
    logger.info("Starting payment reminder refresh job...")
    today = today or date.today()

    results = {
        "started_at": datetime.now(timezone.utc).isoformat(),
        "bills_refreshed": 0,
        "reminders_refreshed": 0,
        "reminders": 0,
        "urgency": {status.value: 0 for status in ReminderStatus},
        "urgent": 0,
        "overdue_bills": 0,
        "overdue_amount": "0.00",
        "errors": [],
    }

    try:
        distributions = DistributionService(db)
        reminders = ReminderService(db)

        results["bills_refreshed"] = await distributions.refresh_statuses(today)
        results["reminders_refreshed"] = await reminders.refresh_statuses(today)

        current = await reminders.list_reminders(today)
        results["reminders"] = len(current)
        for reminder in current:
            results["urgency"][reminder.status.value] += 1
        results["urgent"] = len(await reminders.notifications(today))

        summary = await distributions.summarize(today=today)
        results["overdue_bills"] = summary.overdue_bills
        results["overdue_amount"] = str(summary.overdue_amount)

        await db.commit()

    except (LedgerError, SQLAlchemyError) as e:
        await db.rollback()
        error_msg = f"Payment reminder job failed: {e}"
        logger.error(error_msg)
        results["errors"].append(error_msg)

    results["completed_at"] = datetime.now(timezone.utc).isoformat()
    logger.info(
        f"Payment reminder job completed: {results['bills_refreshed']} bills and "
        f"{results['reminders_refreshed']} reminders refreshed, "
        f"{results['urgent']} urgent, {results['overdue_bills']} overdue bills "
        f"(₹{results['overdue_amount']})"
    )

    return results


def register_payment_reminder_job(scheduler):
    """
    Register the payment reminder refresh with APScheduler.

    Runs daily at REMINDER_REFRESH_HOUR in the scheduler's timezone.
    """
    from spice_ledger.database import get_db_session

    async def job_wrapper():
        async with get_db_session() as db:
            await run_payment_reminder_job(db)

    scheduler.add_job(
        job_wrapper,
        'cron',
        hour=settings.REMINDER_REFRESH_HOUR,
        minute=0,
        id='payment_reminder_refresh',
        name='Daily payment reminder refresh',
        replace_existing=True,
    )

    logger.info(
        f"Payment reminder job registered to run daily at "
        f"{settings.REMINDER_REFRESH_HOUR:02d}:00 ({settings.SCHEDULER_TIMEZONE})"
    )
