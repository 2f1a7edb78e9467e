"""APScheduler-based sync scheduler.

A single cron job triggers a sync of every enabled source. A tick that
arrives while any of those sources is still running is skipped, never
queued.
"""

from typing import Callable, List, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from palbase.config import settings
from palbase.core.exceptions import ConfigurationError, RunInProgressError
from palbase.scrapers.sync_service import SyncService

logger = structlog.get_logger(__name__)

JOB_ID = "scheduled_sync"


def build_cron_trigger(expression: str) -> CronTrigger:
    """Parse a five-field crontab expression (UTC).

    Raises:
        ConfigurationError: If the expression is invalid
    """
    try:
        return CronTrigger.from_crontab(expression, timezone="UTC")
    except ValueError as e:
        raise ConfigurationError(f"Invalid SCRAPER_CRON_SCHEDULE {expression!r}: {e}") from e


class SyncScheduler:
    """Runs the periodic sync of all enabled sources."""

    def __init__(
        self,
        sync_service: SyncService,
        cron_expression: Optional[str] = None,
        sources: Optional[Callable[[], List[str]]] = None,
    ):
        """Initialize the scheduler.

        Args:
            sync_service: Coordinator the ticks go through
            cron_expression: Crontab schedule, defaults to SCRAPER_CRON_SCHEDULE
            sources: Callable returning the sources to sync on each tick

        Raises:
            ConfigurationError: If the cron expression is invalid
        """
        self.sync_service = sync_service
        self.cron_expression = cron_expression or settings.SCRAPER_CRON_SCHEDULE
        self.trigger = build_cron_trigger(self.cron_expression)
        self._sources = sources or settings.enabled_sources
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="sync_scheduler")

    def start(self) -> Job:
        """Register the cron job and start the scheduler."""
        job = self.scheduler.add_job(
            func=self._scheduled_sync_wrapper,
            trigger=self.trigger,
            id=JOB_ID,
            name="Sync all sources",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self.logger.info(
            "scheduler_started",
            cron=self.cron_expression,
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )
        return job

    def stop(self) -> None:
        """Stop firing new ticks. Runs already in progress are drained by the caller."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def is_running(self) -> bool:
        return self.scheduler.running

    async def _scheduled_sync_wrapper(self) -> None:
        """Job entry point; exceptions are logged so the scheduler keeps running."""
        try:
            await self.run_scheduled_sync()
        except Exception as e:
            self.logger.error("scheduled_sync_failed", error=str(e), exc_info=True)

    async def run_scheduled_sync(self) -> bool:
        """Run one tick. Returns False when the tick was skipped."""
        sources = self._sources()
        busy = [s for s in sources if s in self.sync_service.running_sources()]
        if busy:
            self.logger.info("scheduled_sync_skipped", reason="already_running", running=busy)
            return False
        try:
            results = await self.sync_service.run_tracked(sources, trigger="scheduled")
        except RunInProgressError as e:
            self.logger.info("scheduled_sync_skipped", reason="already_running", running=e.sources)
            return False
        self.logger.info("scheduled_sync_completed", sources=sources, completed=len(results))
        return True
