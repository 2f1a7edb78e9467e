"""Tests for the run coordinator."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from palbase.core.exceptions import RunFailure, RunInProgressError
from palbase.models import Pet, RunError, RunLog, Shelter
from palbase.models.enums import ErrorType
from palbase.scrapers.base import ScrapeResult, ShelterRecord
from palbase.scrapers.sync_service import SyncService
from palbase.services.repository import PetRepository

from conftest import StaticAdapter, StubAdapterFactory, make_pet


def _result(*pets, shelters=(), errors=()) -> ScrapeResult:
    result = ScrapeResult()
    for shelter in shelters:
        result.add_shelter(shelter)
    for pet in pets:
        result.add_pet(pet)
    for error_type, message, url in errors:
        result.add_error(error_type, message, url)
    return result


def _service(session_factory, builders, **kwargs) -> SyncService:
    kwargs.setdefault("stale_hours", 48)
    kwargs.setdefault("batch_size", 100)
    kwargs.setdefault("run_timeout_hours", 6)
    return SyncService(session_factory, adapter_factory=StubAdapterFactory(builders), **kwargs)


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestRunSource:
    async def test_successful_run_records_counts(self, session_factory):
        shelter = ShelterRecord(source_id="aspca-nyc", name="ASPCA Adoption Center", state="NY")
        result = _result(
            make_pet("a1", shelter_source_id="aspca-nyc"),
            make_pet("a2"),
            shelters=[shelter],
            errors=[(ErrorType.FETCH_ERROR, "adoptable-cats: timeout", "https://example.org/cats")],
        )
        adapter = StaticAdapter("aspca", result)
        service = _service(session_factory, {"aspca": lambda: adapter})

        run = await service.run_source("aspca", trigger="manual")

        assert run.status == "completed"
        assert (run.pets_found, run.pets_added, run.pets_updated, run.pets_removed) == (2, 2, 0, 0)
        assert run.error_count == 1
        assert adapter.calls == ["initialize", "scrape", "cleanup"]

        async with session_factory() as session:
            run_log = await session.get(RunLog, run.run_log_id)
            assert run_log.status == "completed"
            assert run_log.trigger == "manual"
            assert run_log.pets_found == 2
            assert run_log.error_count == 1
            assert run_log.completed_at is not None
            assert run_log.duration_ms is not None

            shelter_row = (await session.execute(select(Shelter))).scalar_one()
            pets = {p.source_id: p for p in (await session.execute(select(Pet))).scalars()}
            assert pets["a1"].shelter_id == shelter_row.id
            assert pets["a2"].shelter_id is None

            errors = (await session.execute(select(RunError))).scalars().all()
            assert [(e.error_type, e.run_log_id) for e in errors] == [("fetch_error", run.run_log_id)]

        assert not service.is_syncing()

    async def test_failure_marks_run_failed(self, session_factory):
        adapter = StaticAdapter("aspca", error=RuntimeError("browser crashed"))
        service = _service(session_factory, {"aspca": lambda: adapter})

        with pytest.raises(RunFailure) as exc_info:
            await service.run_source("aspca")

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert adapter.calls == ["initialize", "scrape", "cleanup"]

        async with session_factory() as session:
            run_log = (await session.execute(select(RunLog))).scalar_one()
            assert run_log.status == "failed"
            assert run_log.completed_at is not None
            assert run_log.id == exc_info.value.run_log_id

            error = (await session.execute(select(RunError))).scalar_one()
            assert error.error_type == "run_failure"
            assert error.error_message == "browser crashed"
            assert "RuntimeError" in error.stack_trace
            assert error.run_log_id == run_log.id

        assert not service.is_syncing()

    async def test_unregistered_source_fails_the_run(self, session_factory):
        service = _service(session_factory, {})

        with pytest.raises(RunFailure):
            await service.run_source("petsmart")

        assert await _count(session_factory, RunLog) == 1

    async def test_batches_are_split(self, session_factory):
        pets = [make_pet(f"p{i}") for i in range(7)]
        service = _service(
            session_factory,
            {"aspca": lambda: StaticAdapter("aspca", _result(*pets))},
            batch_size=3,
        )

        run = await service.run_source("aspca")

        assert run.pets_added == 7
        assert await _count(session_factory, Pet) == 7


class TestRunIsolation:
    """A second trigger for a running source is rejected without a RunLog."""

    async def test_in_process_claim_blocks(self, session_factory):
        service = _service(session_factory, {"aspca": lambda: StaticAdapter("aspca")})
        service.registry.claim(["aspca"])

        with pytest.raises(RunInProgressError) as exc_info:
            await service.run_source("aspca")

        assert exc_info.value.sources == ["aspca"]
        assert await _count(session_factory, RunLog) == 0

    async def test_recent_running_run_log_blocks(self, session_factory):
        async with session_factory() as session:
            await PetRepository(session).create_run_log("aspca", "scheduled")
            await session.commit()
        service = _service(session_factory, {"aspca": lambda: StaticAdapter("aspca")})

        with pytest.raises(RunInProgressError):
            await service.run_source("aspca")

        assert await _count(session_factory, RunLog) == 1

    async def test_abandoned_running_run_log_does_not_block(self, session_factory):
        async with session_factory() as session:
            run_log = await PetRepository(session).create_run_log("aspca", "scheduled")
            run_log.started_at = datetime.now(timezone.utc) - timedelta(hours=7)
            await session.commit()
        service = _service(session_factory, {"aspca": lambda: StaticAdapter("aspca")})

        run = await service.run_source("aspca")

        assert run.status == "completed"

    async def test_other_sources_are_not_blocked(self, session_factory):
        service = _service(session_factory, {"petsmart": lambda: StaticAdapter("petsmart")})
        service.registry.claim(["aspca"])

        run = await service.run_source("petsmart")

        assert run.status == "completed"
        assert service.running_sources() == ["aspca"]

    async def test_concurrent_background_trigger_rejected(self, session_factory):
        gate = asyncio.Event()

        class SlowAdapter(StaticAdapter):
            async def scrape(self):
                await gate.wait()
                return await super().scrape()

        service = _service(session_factory, {"aspca": lambda: SlowAdapter("aspca")})

        started = await service.start_background(["aspca"], trigger="api")
        assert started == ["aspca"]
        assert service.is_syncing()

        with pytest.raises(RunInProgressError):
            await service.start_background(["aspca"], trigger="api")

        gate.set()
        assert await service.drain(timeout=5)
        assert not service.is_syncing()
        assert await _count(session_factory, RunLog) == 1


class TestRunAll:
    async def test_one_failing_source_does_not_stop_the_rest(self, session_factory):
        service = _service(
            session_factory,
            {
                "aspca": lambda: StaticAdapter("aspca", error=RuntimeError("down")),
                "petsmart": lambda: StaticAdapter("petsmart", _result(make_pet("p1"))),
            },
        )

        results = await service.run_all(["aspca", "petsmart"], trigger="scheduled")

        assert [r.source for r in results] == ["petsmart"]
        async with session_factory() as session:
            statuses = dict(
                (await session.execute(select(RunLog.source, RunLog.status))).all()
            )
        assert statuses == {"aspca": "failed", "petsmart": "completed"}
        assert not service.is_syncing()


class TestEndToEnd:
    """Two runs of one source: new, updated and vanished pets."""

    async def test_second_run_updates_adds_and_removes(self, session_factory):
        runs = iter(
            [
                _result(make_pet("A", name="Alpha"), make_pet("B", name="Bravo")),
                _result(make_pet("A", name="Alpha"), make_pet("C", name="Charlie")),
            ]
        )
        service = _service(session_factory, {"aspca": lambda: StaticAdapter("aspca", next(runs))})

        first = await service.run_source("aspca")
        assert (first.pets_found, first.pets_added, first.pets_updated, first.pets_removed) == (2, 2, 0, 0)

        # Age the first sighting beyond the staleness window
        async with session_factory() as session:
            await session.execute(
                update(Pet).values(
                    first_seen_at=datetime.now(timezone.utc) - timedelta(hours=72),
                    last_seen_at=datetime.now(timezone.utc) - timedelta(hours=72),
                )
            )
            await session.commit()
            a_first_seen = (
                await session.execute(select(Pet.first_seen_at).where(Pet.source_id == "A"))
            ).scalar_one()

        second = await service.run_source("aspca")
        assert (second.pets_found, second.pets_added, second.pets_updated, second.pets_removed) == (2, 1, 1, 1)

        async with session_factory() as session:
            pets = {p.source_id: p for p in (await session.execute(select(Pet))).scalars()}
            latest = await PetRepository(session).get_latest_run_log("aspca")

        assert {k: p.status for k, p in pets.items()} == {"A": "active", "B": "removed", "C": "active"}
        assert pets["A"].first_seen_at == a_first_seen
        assert pets["A"].last_seen_at > a_first_seen
        assert latest.id == second.run_log_id
        assert latest.pets_removed == 1
