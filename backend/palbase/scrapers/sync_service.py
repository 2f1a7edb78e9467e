"""Run coordinator.

SyncService turns one adapter run into durable state: it opens a RunLog,
drives the adapter, upserts shelters then pets, sweeps stale pets, records
errors and closes the RunLog. At most one run per source is active at a
time, guarded by the in-process RunRegistry and by any recent RunLog still
marked running.
"""

import asyncio
import time
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from palbase.config import settings
from palbase.core.exceptions import RunFailure, RunInProgressError
from palbase.models.enums import ErrorType, RunStatus
from palbase.scrapers.base import BaseAdapter, ScrapeResult
from palbase.scrapers.factory import AdapterFactory, get_adapter_factory
from palbase.scrapers.run_state import RunRegistry
from palbase.services.repository import PetRepository

logger = structlog.get_logger(__name__)


@dataclass
class RunResult:
    """Counters of one completed run, mirroring its RunLog."""

    source: str
    run_log_id: UUID
    status: str
    pets_found: int = 0
    pets_added: int = 0
    pets_updated: int = 0
    pets_removed: int = 0
    error_count: int = 0
    duration_ms: int = 0


class SyncService:
    """Coordinates adapter runs against the database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapter_factory: Optional[AdapterFactory] = None,
        registry: Optional[RunRegistry] = None,
        stale_hours: Optional[int] = None,
        batch_size: Optional[int] = None,
        run_timeout_hours: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.adapter_factory = adapter_factory or get_adapter_factory()
        self.registry = registry or RunRegistry()
        self.stale_hours = stale_hours if stale_hours is not None else settings.SCRAPER_STALE_HOURS
        self.batch_size = batch_size or settings.SYNC_BATCH_SIZE
        self.run_timeout_hours = (
            run_timeout_hours if run_timeout_hours is not None else settings.SCRAPER_RUN_TIMEOUT_HOURS
        )
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logger.bind(service="sync_service")

    # ------------------------------------------------------------------
    # Run guard
    # ------------------------------------------------------------------

    def is_syncing(self) -> bool:
        return self.registry.any_running

    def running_sources(self) -> List[str]:
        return self.registry.running_sources

    async def _claim(self, sources: List[str]) -> None:
        """Claim every source or none.

        Raises:
            RunInProgressError: If any source is running here or, per its
                RunLog, in another process
        """
        async with self.registry.lock:
            busy = self.registry.busy(sources)
            if not busy:
                async with self.session_factory() as session:
                    repo = PetRepository(session)
                    for source in sources:
                        if await repo.get_running_run_log(source, self.run_timeout_hours):
                            busy.append(source)
            if busy:
                raise RunInProgressError(busy)
            self.registry.claim(sources)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_source(self, source: str, trigger: str = "manual") -> RunResult:
        """Run one source in the foreground.

        Raises:
            RunInProgressError: If the source is already being synced
            RunFailure: If the run ended in the failed state
        """
        await self._claim([source])
        try:
            return await self._execute(source, trigger)
        finally:
            self.registry.release(source)

    async def run_all(self, sources: List[str], trigger: str = "manual") -> List[RunResult]:
        """Run several sources sequentially; one failing source does not stop the rest.

        Raises:
            RunInProgressError: If any of the sources is already being synced
        """
        await self._claim(sources)
        return await self._run_claimed(sources, trigger)

    async def start_background(self, sources: List[str], trigger: str = "manual") -> List[str]:
        """Claim the sources and run them in a background task.

        Raises:
            RunInProgressError: If any of the sources is already being synced
        """
        await self._claim(sources)
        self._spawn(sources, trigger)
        self.logger.info("background_sync_started", sources=sources, trigger=trigger)
        return sources

    async def run_tracked(self, sources: List[str], trigger: str = "manual") -> List[RunResult]:
        """Like run_all, but the run is a tracked task that drain() waits for.

        Cancelling the caller does not cancel the run.

        Raises:
            RunInProgressError: If any of the sources is already being synced
        """
        await self._claim(sources)
        task = self._spawn(sources, trigger)
        return await asyncio.shield(task)

    def _spawn(self, sources: List[str], trigger: str) -> asyncio.Task:
        """Start a task for already claimed sources."""
        try:
            task = asyncio.create_task(self._run_claimed(sources, trigger))
        except Exception:
            for source in sources:
                self.registry.release(source)
            raise
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("background_sync_crashed", error=str(task.exception()))

    async def drain(self, timeout: float) -> bool:
        """Wait for tracked syncs (API and scheduled) to finish. Returns False if some were still running."""
        if not self._tasks:
            return True
        pending = list(self._tasks)
        self.logger.info("draining_background_syncs", count=len(pending), timeout=timeout)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            self.logger.warning("drain_timeout", still_running=len(still_running))
            for task in still_running:
                task.cancel()
            return False
        return True

    async def _run_claimed(self, sources: List[str], trigger: str) -> List[RunResult]:
        results: List[RunResult] = []
        try:
            for source in list(sources):
                try:
                    results.append(await self._execute(source, trigger))
                except RunFailure as e:
                    self.logger.error("source_run_failed", source=source, error=str(e.cause))
                finally:
                    self.registry.release(source)
        finally:
            for source in sources:
                self.registry.release(source)
        self.logger.info(
            "sync_finished",
            trigger=trigger,
            sources=sources,
            succeeded=[r.source for r in results],
        )
        return results

    # ------------------------------------------------------------------
    # One run
    # ------------------------------------------------------------------

    async def _execute(self, source: str, trigger: str) -> RunResult:
        """Perform one run of ``source``. The caller must hold the claim."""
        log = self.logger.bind(source=source, trigger=trigger)
        async with self.session_factory() as session:
            repo = PetRepository(session)
            run_log = await repo.create_run_log(source, trigger)
            await session.commit()
            run_log_id = run_log.id
            log = log.bind(run_log_id=str(run_log_id))
            log.info("run_started")

            started = time.monotonic()
            adapter: Optional[BaseAdapter] = None
            try:
                adapter = self.adapter_factory.create_adapter(source)
                if adapter is None:
                    raise ValueError(f"No adapter registered for source: {source}")
                await adapter.initialize()
                result = await adapter.scrape()
                log.info("scrape_finished", pets=len(result.pets), shelters=len(result.shelters), errors=len(result.errors))

                added, updated = await self._persist(repo, source, result)
                removed = await repo.mark_stale_as_removed(source, self.stale_hours)
                await repo.bulk_create_run_errors(run_log_id, source, result.errors)

                run_result = RunResult(
                    source=source,
                    run_log_id=run_log_id,
                    status=RunStatus.COMPLETED.value,
                    pets_found=len(result.pets),
                    pets_added=added,
                    pets_updated=updated,
                    pets_removed=removed,
                    error_count=len(result.errors),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
                await repo.update_run_log(
                    run_log_id,
                    status=RunStatus.COMPLETED,
                    completed_at=datetime.now(timezone.utc),
                    pets_found=run_result.pets_found,
                    pets_added=run_result.pets_added,
                    pets_updated=run_result.pets_updated,
                    pets_removed=run_result.pets_removed,
                    error_count=run_result.error_count,
                    duration_ms=run_result.duration_ms,
                )
                await session.commit()
                log.info(
                    "run_completed",
                    pets_found=run_result.pets_found,
                    pets_added=added,
                    pets_updated=updated,
                    pets_removed=removed,
                    error_count=run_result.error_count,
                    duration_ms=run_result.duration_ms,
                )
                return run_result

            except Exception as e:
                log.error("run_failed", error=str(e), exc_info=True)
                stack = traceback.format_exc()
                await session.rollback()
                await repo.update_run_log(
                    run_log_id,
                    status=RunStatus.FAILED,
                    completed_at=datetime.now(timezone.utc),
                    error_count=1,
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
                await repo.create_run_error(
                    source,
                    ErrorType.RUN_FAILURE,
                    str(e) or e.__class__.__name__,
                    run_log_id=run_log_id,
                    stack_trace=stack,
                )
                await session.commit()
                raise RunFailure(source, run_log_id, e) from e

            finally:
                if adapter is not None:
                    try:
                        await adapter.cleanup()
                    except Exception as e:
                        log.warning("adapter_cleanup_failed", error=str(e))

    async def _persist(self, repo: PetRepository, source: str, result: ScrapeResult):
        """Upsert shelters, then pets in batches. Returns (added, updated)."""
        shelter_ids: Dict[str, UUID] = {}
        for shelter in result.shelters:
            shelter_ids[shelter.source_id] = await repo.upsert_shelter(source, shelter.to_record())

        records = []
        for pet in result.pets:
            record = pet.to_record()
            record["shelter_id"] = shelter_ids.get(pet.shelter_source_id) if pet.shelter_source_id else None
            records.append(record)

        existing = await repo.get_existing_source_ids(source, (r["source_id"] for r in records))
        seen_at = datetime.now(timezone.utc)
        for i in range(0, len(records), self.batch_size):
            await repo.bulk_upsert_pets(source, records[i:i + self.batch_size], seen_at=seen_at)

        unique_ids = {r["source_id"] for r in records}
        updated = len(unique_ids & existing)
        return len(unique_ids) - updated, updated
