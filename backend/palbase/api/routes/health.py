"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from palbase.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Liveness probe. Does not touch the database or the browser."""
    return HealthCheckResponse(status="ok", timestamp=datetime.now(timezone.utc))
