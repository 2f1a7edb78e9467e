"""Sync trigger and run log schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SyncStartedResponse(BaseModel):
    message: str = "Sync started"
    sources: List[str]


class SyncStatusResponse(BaseModel):
    syncing: bool
    running_sources: List[str] = []


class ErrorResponse(BaseModel):
    error: str


class RunLogResponse(BaseModel):
    """A RunLog row as returned by the latest-run endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source: str
    trigger: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    pets_found: int
    pets_added: int
    pets_updated: int
    pets_removed: int
    error_count: int
    created_at: datetime
