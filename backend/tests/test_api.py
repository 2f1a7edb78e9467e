"""Tests for the HTTP control plane."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import StaticAdapter, StubAdapterFactory
from palbase.config import KNOWN_SOURCES, settings
from palbase.dependencies import get_db, get_sync_service
from palbase.main import app
from palbase.scrapers.sync_service import SyncService


@pytest.fixture
def sync_service(session_factory):
    builders = {source: (lambda source=source: StaticAdapter(source)) for source in KNOWN_SOURCES}
    return SyncService(session_factory, adapter_factory=StubAdapterFactory(builders))


@pytest_asyncio.fixture
async def client(session_factory, sync_service):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await sync_service.drain(5)
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert "timestamp" in body


class TestTriggers:
    async def test_scrape_single_source(self, client, sync_service):
        response = await client.post("/api/scrape/aspca")

        assert response.status_code == 202
        assert response.json() == {"message": "Sync started", "sources": ["aspca"]}
        assert await sync_service.drain(5)

        latest = await client.get("/api/sync/runs/aspca/latest")
        assert latest.status_code == 200
        body = latest.json()
        assert body["source"] == "aspca"
        assert body["trigger"] == "api"
        assert body["status"] == "completed"

    async def test_source_slug_is_case_insensitive(self, client):
        response = await client.post("/api/scrape/ASPCA")
        assert response.status_code == 202
        assert response.json()["sources"] == ["aspca"]

    async def test_unknown_source(self, client):
        response = await client.post("/api/scrape/craigslist")
        assert response.status_code == 404
        assert response.json() == {"error": "Unknown source: craigslist"}

    @pytest.mark.parametrize("path", ["/api/sync", "/api/scrape/all"])
    async def test_sync_all_enabled_sources(self, client, path):
        response = await client.post(path)
        assert response.status_code == 202
        assert response.json()["sources"] == settings.enabled_sources()

    async def test_conflict_while_running(self, client, sync_service):
        sync_service.registry.claim(["aspca"])
        try:
            response = await client.post("/api/scrape/aspca")
        finally:
            sync_service.registry.release("aspca")

        assert response.status_code == 409
        assert response.json() == {"error": "Sync already in progress"}

    async def test_sync_all_conflicts_if_any_source_running(self, client, sync_service):
        sync_service.registry.claim(["petsmart"])
        try:
            response = await client.post("/api/sync")
        finally:
            sync_service.registry.release("petsmart")
        assert response.status_code == 409

    async def test_start_failure(self, client, sync_service, monkeypatch):
        async def broken(sources, trigger="manual"):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(sync_service, "start_background", broken)
        response = await client.post("/api/scrape/aspca")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to start sync"}


class TestStatus:
    async def test_idle(self, client):
        response = await client.get("/api/sync/status")
        assert response.status_code == 200
        assert response.json() == {"syncing": False, "running_sources": []}

    async def test_running(self, client, sync_service):
        sync_service.registry.claim(["petsmart"])
        try:
            response = await client.get("/api/sync/status")
        finally:
            sync_service.registry.release("petsmart")
        assert response.json() == {"syncing": True, "running_sources": ["petsmart"]}

    async def test_latest_run_missing(self, client):
        response = await client.get("/api/sync/runs/petfinder/latest")
        assert response.status_code == 404
        assert response.json() == {"error": "No runs recorded for petfinder"}

    async def test_latest_run_unknown_source(self, client):
        response = await client.get("/api/sync/runs/craigslist/latest")
        assert response.status_code == 404
