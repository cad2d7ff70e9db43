"""
Per-caterer job runner.

A caterer job is an async function `(session, caterer)` registered under a
name with @caterer_job. The runner executes it once per caterer:

- every caterer gets its own session and its own commit or rollback
- a semaphore caps how many caterers are processed at once
- one caterer failing is recorded in the summary and does not stop the rest

Usage:
    @caterer_job("sync_caterer_balance")
    async def sync_caterer_balance(session, caterer):
        await BalanceSyncService(session).sync_caterer_balance(caterer["id"])
"""

import logging
import asyncio
import time
from dataclasses import dataclass, asdict
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

CatererJob = Callable[[AsyncSession, dict], Awaitable[object]]

_caterer_jobs: Dict[str, CatererJob] = {}


def caterer_job(name: str):
    """Register the decorated coroutine as the per-caterer job `name`."""
    def decorator(func: CatererJob) -> CatererJob:
        _caterer_jobs[name] = func
        return func
    return decorator


def registered_jobs() -> List[str]:
    return sorted(_caterer_jobs)


@dataclass
class CatererRun:
    caterer_id: str
    caterer_name: str
    success: bool
    duration_ms: int
    error: Optional[str] = None


class CatererJobRunner:
    def __init__(
        self,
        max_concurrent: Optional[int] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        from spice_ledger.config import settings
        from spice_ledger.database import async_session_factory

        self.max_concurrent = max_concurrent or settings.BALANCE_SYNC_MAX_CONCURRENT
        self.session_factory = session_factory or async_session_factory
        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def get_caterers(self) -> List[dict]:
        from spice_ledger.models.caterer import Caterer

        async with self.session_factory() as session:
            rows = await session.execute(select(Caterer.id, Caterer.name).order_by(Caterer.name))
            return [{"id": row.id, "name": row.name} for row in rows]

    async def run_for_caterer(self, job_name: str, job: CatererJob, caterer: dict) -> CatererRun:
        started = time.monotonic()
        error = None

        async with self._semaphore:
            async with self.session_factory() as session:
                try:
                    await job(session, caterer)
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    error = str(e)
                    logger.error(f"Job '{job_name}' failed for caterer '{caterer['name']}': {e}")

        return CatererRun(
            caterer_id=str(caterer["id"]),
            caterer_name=caterer["name"],
            success=error is None,
            duration_ms=int((time.monotonic() - started) * 1000),
            error=error,
        )

    async def run_job(self, job_name: str) -> dict:
        """
        Run `job_name` for every caterer and return a summary dict with
        status, caterer_count, successful, failed and per-caterer results.
        """
        job = _caterer_jobs.get(job_name)
        if job is None:
            raise ValueError(f"Unknown job: {job_name}. Registered: {registered_jobs()}")

        caterers = await self.get_caterers()
        if not caterers:
            logger.info(f"No caterers, job '{job_name}' skipped")
            return {
                "job": job_name,
                "status": "skipped",
                "caterer_count": 0,
                "successful": 0,
                "failed": 0,
                "results": [],
            }

        started = time.monotonic()
        runs = await asyncio.gather(
            *(self.run_for_caterer(job_name, job, caterer) for caterer in caterers)
        )
        successful = sum(1 for run in runs if run.success)
        duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(f"Job '{job_name}': {successful}/{len(runs)} caterers in {duration_ms}ms")
        return {
            "job": job_name,
            "status": "completed",
            "duration_ms": duration_ms,
            "caterer_count": len(runs),
            "successful": successful,
            "failed": len(runs) - successful,
            "results": [asdict(run) for run in runs],
        }


async def run_caterer_job(job_name: str, runner: Optional[CatererJobRunner] = None) -> dict:
    # Importing the job modules registers them
    from spice_ledger.jobs import balance_sync  # noqa: F401

    runner = runner or CatererJobRunner()
    return await runner.run_job(job_name)
