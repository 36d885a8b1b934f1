"""API response envelope schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from presscache.models.schedule import SchedulerConfig

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T


class HealthStatus(BaseModel):
    """Application health status."""

    status: str  # "healthy", "degraded"
    version: str
    entry_count: int
    passthrough: bool  # Cache directory unusable
    refresh_pending: int
    inflight_fetches: int
    timestamp: datetime
    schedule: dict[str, Any] = Field(default_factory=dict)


class ScheduleStatus(BaseModel):
    """Scheduler configuration with its current scheduling context."""

    config: SchedulerConfig
    context: dict[str, Any]


class RefreshSubmission(BaseModel):
    """Result of submitting cached URLs for background refresh."""

    submitted: int
    already_queued: int
    total: int


class PurgeResult(BaseModel):
    """Result of an administrative cache purge."""

    bytes_freed: int
