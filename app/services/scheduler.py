"""Internal task scheduler using APScheduler.

Runs the nightly rank reconciliation inside the host process. Upline
propagation keeps ranks current on every structural change, but concurrent
mutations of the same chain can race (last write wins), so a full pass
repairs any drift.

Overlapping runs in one process are skipped with an asyncio lock.
"""

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings

logger = logging.getLogger(__name__)

RANK_RECONCILE_JOB_ID = "rank_reconcile"

_reconcile_lock = asyncio.Lock()


async def run_rank_reconciliation() -> dict[str, Any] | None:
    """
    Execute the rank reconciliation job.

    Returns the report dict if executed, None if skipped (already running) or failed.
    """
    if _reconcile_lock.locked():
        logger.info("[scheduler] Rank-reconcile: skipped (previous run still in progress)")
        return None

    async with _reconcile_lock:
        logger.info("[scheduler] Rank-reconcile: starting")

        try:
            from app.services.rank import RankService

            service = await RankService.create()
            report = await service.recalculate_all_ranks()

            logger.info(
                f"[scheduler] Rank-reconcile: completed "
                f"({report.users_scanned} scanned, "
                f"{report.records_updated} repaired, "
                f"{report.duration_seconds}s)"
            )
            return asdict(report)

        except Exception as e:
            logger.exception(f"[scheduler] Rank-reconcile: failed with error: {e}")
            return None


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        # Rank reconciliation: daily at configured hour (UTC)
        self._scheduler.add_job(
            run_rank_reconciliation,
            trigger=CronTrigger(hour=settings.rank_reconcile_hour, minute=0, timezone="UTC"),
            id=RANK_RECONCILE_JOB_ID,
            name="Rank Reconciliation",
            replace_existing=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with rank-reconcile at {settings.rank_reconcile_hour:02d}:00 UTC"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == RANK_RECONCILE_JOB_ID:
            return await run_rank_reconciliation()
        return None


scheduler = Scheduler()
