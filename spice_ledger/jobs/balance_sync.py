"""
Balance Sync Job.

Recomputes every caterer's aggregate (total_billed, total_paid, balance_due,
total_orders) from bills and payments, one caterer per session.

Triggers:
- Interval job (via APScheduler), every BALANCE_SYNC_INTERVAL_HOURS
- POST /caterers/sync-balances runs the in-request variant
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from spice_ledger.jobs.job_runner import caterer_job
from spice_ledger.services.balance_sync_service import BalanceSyncService

logger = logging.getLogger(__name__)

SYNC_BALANCE_JOB = "sync_caterer_balance"


@caterer_job(SYNC_BALANCE_JOB)
async def sync_caterer_balance_job(session: AsyncSession, caterer: dict):
    balance = await BalanceSyncService(session).sync_caterer_balance(caterer["id"])
    logger.debug(
        f"Caterer '{caterer['name']}': billed {balance.total_billed}, "
        f"paid {balance.total_paid}, due {balance.balance_due}"
    )
