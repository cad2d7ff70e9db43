"""
Background scheduler for ledger maintenance.

Runs on the application's event loop (AsyncIOScheduler, in-memory job store).
Two jobs are registered at startup:

- sync_caterer_balance: every BALANCE_SYNC_INTERVAL_HOURS, recomputes every
  caterer's aggregate through the CatererJobRunner
- payment_reminder_refresh: daily at REMINDER_REFRESH_HOUR, re-derives bill
  statuses and reminder urgency
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from spice_ledger.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(
    jobstores={'default': MemoryJobStore()},
    executors={'default': AsyncIOExecutor()},
    job_defaults={
        'coalesce': True,  # a missed run is executed once, not replayed
        'max_instances': 1,
        'misfire_grace_time': 300,
    },
    timezone=settings.SCHEDULER_TIMEZONE,
)


async def run_scheduled_caterer_job(job_name: str):
    """Scheduler entry point for jobs registered with @caterer_job."""
    from spice_ledger.jobs.job_runner import run_caterer_job

    try:
        summary = await run_caterer_job(job_name)
    except Exception:
        logger.exception(f"Scheduled job '{job_name}' crashed")
        return

    if summary.get('failed'):
        logger.warning(
            f"Job '{job_name}': {summary['failed']} of {summary['caterer_count']} caterers failed"
        )
    else:
        logger.info(f"Job '{job_name}': {summary.get('status')}")


def start_scheduler():
    if scheduler.running:
        return

    from spice_ledger.jobs.balance_sync import SYNC_BALANCE_JOB
    from spice_ledger.jobs.payment_reminders import register_payment_reminder_job

    scheduler.add_job(
        run_scheduled_caterer_job,
        'interval',
        hours=settings.BALANCE_SYNC_INTERVAL_HOURS,
        args=[SYNC_BALANCE_JOB],
        id=SYNC_BALANCE_JOB,
        name='Sync caterer balances',
        replace_existing=True,
    )
    register_payment_reminder_job(scheduler)

    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info(f"Scheduled '{job.name}', next run {job.next_run_time}")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")


def get_job_status():
    """Scheduled jobs and their next run, for the health endpoint."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
