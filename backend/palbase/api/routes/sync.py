"""Sync trigger endpoints.

Triggers return 202 as soon as the run is claimed; the run itself happens in
a background task. A trigger for a source that is already running is
rejected with 409 (see the RunInProgressError handler in palbase.main).
"""

from typing import List

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from palbase.config import KNOWN_SOURCES, settings
from palbase.core.exceptions import RunInProgressError
from palbase.dependencies import get_repository, get_sync_service
from palbase.schemas import ErrorResponse, RunLogResponse, SyncStartedResponse, SyncStatusResponse
from palbase.scrapers.sync_service import SyncService
from palbase.services.repository import PetRepository

router = APIRouter()
logger = structlog.get_logger(__name__)

_ERROR_RESPONSES = {
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _unknown_source(source: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": f"Unknown source: {source}"},
    )


async def _start(sync_service: SyncService, sources: List[str], trigger: str):
    try:
        started = await sync_service.start_background(sources, trigger=trigger)
    except RunInProgressError:
        raise
    except Exception as e:
        logger.error("sync_start_failed", sources=sources, error=str(e), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to start sync"},
        )
    return SyncStartedResponse(sources=started)


@router.post(
    "/sync",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SyncStartedResponse,
    responses=_ERROR_RESPONSES,
)
async def trigger_sync(sync_service: SyncService = Depends(get_sync_service)):
    """Start a sync of every enabled source."""
    return await _start(sync_service, settings.enabled_sources(), trigger="api")


@router.post(
    "/scrape/all",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SyncStartedResponse,
    responses=_ERROR_RESPONSES,
)
async def trigger_scrape_all(sync_service: SyncService = Depends(get_sync_service)):
    """Alias of POST /api/sync."""
    return await _start(sync_service, settings.enabled_sources(), trigger="api")


@router.post(
    "/scrape/{source}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SyncStartedResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}, **_ERROR_RESPONSES},
)
async def trigger_scrape_source(source: str, sync_service: SyncService = Depends(get_sync_service)):
    """Start a sync of a single source."""
    source = source.lower()
    if source not in KNOWN_SOURCES:
        return _unknown_source(source)
    return await _start(sync_service, [source], trigger="api")


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(sync_service: SyncService = Depends(get_sync_service)):
    return SyncStatusResponse(
        syncing=sync_service.is_syncing(),
        running_sources=sync_service.running_sources(),
    )


@router.get(
    "/sync/runs/{source}/latest",
    response_model=RunLogResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def latest_run(source: str, repo: PetRepository = Depends(get_repository)):
    """Most recent RunLog of a source."""
    source = source.lower()
    if source not in KNOWN_SOURCES:
        return _unknown_source(source)
    run_log = await repo.get_latest_run_log(source)
    if run_log is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"No runs recorded for {source}"},
        )
    return RunLogResponse.model_validate(run_log)
