"""Health check endpoint."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from presscache import __version__
from presscache.api.deps import get_image_cache_service
from presscache.api.schemas.responses import ApiResponse, HealthStatus
from presscache.services.image_cache import ImageCacheService

router = APIRouter()


@router.get("/health", response_model=ApiResponse[HealthStatus])
async def health_check(
    service: ImageCacheService = Depends(get_image_cache_service),
) -> ApiResponse[HealthStatus]:
    """
    Health check endpoint.

    Returns application health status including:
    - Cache directory usability (passthrough mode means degraded)
    - Number of cached URLs and pending refreshes
    - Application version and scheduling context
    """
    status = "degraded" if service.passthrough else "healthy"

    health_data = HealthStatus(
        status=status,
        version=__version__,
        entry_count=len(service.mapping),
        passthrough=service.passthrough,
        refresh_pending=len(service.refresh_queue),
        inflight_fetches=service.inflight_count(),
        timestamp=datetime.now(timezone.utc),
        schedule=service.scheduler.describe(),
    )

    return ApiResponse[HealthStatus](data=health_data)
