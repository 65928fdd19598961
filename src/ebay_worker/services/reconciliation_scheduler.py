"""
Reconciliation Scheduler using APScheduler.

Runs sweeps over all linked accounts:
- daily mode: once a day at SYNC_HOUR:SYNC_MINUTE in SYNC_TIMEZONE
- interval mode: every SYNC_INTERVAL_SECONDS

At most one sweep is in flight; ticks arriving while a sweep runs are
dropped.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ebay_api.config.constants import SCHEDULE_MODE_DAILY, SCHEDULE_MODE_INTERVAL
from ebay_api.core.errors import ConfigurationError
from ebay_api.core.logger import setup_logger
from ebay_worker.services.reconciliation_service import ReconciliationService

logger = setup_logger(__name__)

JOB_ID = "tracking_sweep"


def daily_run_passed(now: datetime, tz_name: str, hour: int, minute: int) -> bool:
    """Whether today's run time in the given timezone is already behind us."""
    local_now = now.astimezone(ZoneInfo(tz_name))
    run_at = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return local_now >= run_at


class ReconciliationScheduler:
    """Owns the sweep schedule and the single in-flight sweep."""

    def __init__(
        self,
        reconciliation_service: ReconciliationService,
        mode: str = SCHEDULE_MODE_DAILY,
        tz_name: str = "America/New_York",
        hour: int = 9,
        minute: int = 0,
        interval_seconds: int = 60,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if mode not in (SCHEDULE_MODE_DAILY, SCHEDULE_MODE_INTERVAL):
            raise ConfigurationError(f"Unknown SYNC_SCHEDULE_MODE: {mode}")

        self.service = reconciliation_service
        self.mode = mode
        self.tz_name = tz_name
        self.hour = hour
        self.minute = minute
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.scheduler = AsyncIOScheduler()
        self._current: Optional[asyncio.Task] = None
        self._started = False
        self._stopping = False

    def _build_trigger(self):
        if self.mode == SCHEDULE_MODE_INTERVAL:
            return IntervalTrigger(seconds=self.interval_seconds)
        return CronTrigger(hour=self.hour, minute=self.minute, timezone=ZoneInfo(self.tz_name))

    async def start(self, run_startup_sync: bool = True):
        """
        Start scheduler with the configured job.

        Args:
            run_startup_sync: Run a sweep now if today's run was missed (daily)
                or unconditionally (interval)
        """
        if self._started:
            logger.warning("Scheduler already started")
            return
        if self._stopping:
            logger.warning("Scheduler was stopped and cannot be restarted")
            return

        self.scheduler.add_job(
            self._on_tick,
            self._build_trigger(),
            id=JOB_ID,
            name="Tracking Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if self.mode == SCHEDULE_MODE_DAILY:
            logger.info(f"Added daily sweep job (at {self.hour:02d}:{self.minute:02d} {self.tz_name})")
        else:
            logger.info(f"Added interval sweep job (every {self.interval_seconds}s)")

        self.scheduler.start()
        self._started = True
        logger.info("Reconciliation scheduler started")

        if run_startup_sync and (
            self.mode == SCHEDULE_MODE_INTERVAL
            or daily_run_passed(self.clock(), self.tz_name, self.hour, self.minute)
        ):
            logger.info("Running startup sweep...")
            self.trigger_sweep()

    def trigger_sweep(self) -> Optional[asyncio.Task]:
        """
        Start a sweep unless one is already running or the scheduler is stopping.

        Returns:
            The sweep task, or None if nothing was started
        """
        if self._stopping:
            return None
        if self._current is not None and not self._current.done():
            logger.info("Sweep already in progress, skipping trigger")
            return None

        self._current = asyncio.create_task(self._run_sweep())
        return self._current

    async def _on_tick(self):
        task = self.trigger_sweep()
        if task is not None:
            await asyncio.shield(task)

    async def _run_sweep(self):
        """Wrapper for a sweep with error handling."""
        try:
            result = await self.service.run_sweep(should_continue=lambda: not self._stopping)
            if result.errors:
                logger.warning(f"Sweep had issues: {result.errors[:5]}")
            return result
        except Exception as e:
            logger.error(f"Sweep failed: {e}", exc_info=True)
            return None

    async def stop(self):
        """Stop scheduling new sweeps and wait for the in-flight sweep to drain."""
        if self._stopping:
            if self._current is not None:
                await asyncio.shield(self._current)
            return

        self._stopping = True
        if self._started and self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        if self._current is not None and not self._current.done():
            logger.info("Waiting for in-flight sweep to finish")
            await asyncio.shield(self._current)

        self._started = False
        logger.info("Reconciliation scheduler stopped")

    def get_next_run_time(self) -> Optional[str]:
        """Get the next scheduled sweep time as formatted string."""
        job = self.scheduler.get_job(JOB_ID)
        if job and job.next_run_time:
            return job.next_run_time.strftime("%Y-%m-%d %H:%M:%S %Z")
        return None

    @property
    def is_running(self) -> bool:
        return self._started and self.scheduler.running

    @property
    def sweep_in_progress(self) -> bool:
        return self._current is not None and not self._current.done()
