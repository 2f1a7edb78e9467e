"""Palbase ingestion service: FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from palbase import __version__
from palbase.api.router import api_router
from palbase.config import settings
from palbase.core.exceptions import RunInProgressError
from palbase.core.logging import configure_logging
from palbase.db.session import create_tables
from palbase.dependencies import get_sync_service
from palbase.scrapers.register_adapters import register_all_adapters
from palbase.scrapers.scheduler import SyncScheduler, build_cron_trigger
from palbase.scrapers.utils.browser_manager import get_browser_manager

logger = structlog.get_logger(__name__)

# Global scheduler instance
scheduler: Optional[SyncScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    global scheduler

    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info("starting_server", environment=settings.ENVIRONMENT, port=settings.SCRAPER_PORT)

    # Fail fast on bad configuration
    settings.validate_required()
    build_cron_trigger(settings.SCRAPER_CRON_SCHEDULE)
    sources = settings.enabled_sources()

    await create_tables()
    logger.info("database_tables_ready")

    register_all_adapters()
    sync_service = get_sync_service()

    if settings.ENVIRONMENT != "test":
        scheduler = SyncScheduler(sync_service)
        scheduler.start()
    else:
        logger.info("scheduler_disabled", reason="test_environment")

    logger.info("server_ready", sources=sources)

    yield

    logger.info("shutting_down")

    if scheduler:
        scheduler.stop()
        scheduler = None

    await sync_service.drain(settings.SHUTDOWN_DRAIN_SECONDS)

    try:
        await get_browser_manager().stop()
    except Exception as e:
        logger.warning("browser_manager_stop_failed", error=str(e))

    logger.info("shutdown_complete")


app = FastAPI(
    title="Palbase Ingestion API",
    description="Pet adoption listing ingestion control plane",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RunInProgressError)
async def run_in_progress_handler(request: Request, exc: RunInProgressError):
    logger.info("sync_rejected", reason="already_running", sources=exc.sources)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "Sync already in progress"},
    )


app.include_router(api_router)
