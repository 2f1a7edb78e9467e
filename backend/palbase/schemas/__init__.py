"""Pydantic schemas for the HTTP control plane."""

from .health import HealthCheckResponse
from .sync import ErrorResponse, RunLogResponse, SyncStartedResponse, SyncStatusResponse

__all__ = [
    "HealthCheckResponse",
    "ErrorResponse",
    "RunLogResponse",
    "SyncStartedResponse",
    "SyncStatusResponse",
]
