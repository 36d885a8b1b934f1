"""Cache and schedule administration endpoints.

- GET /admin/cache/stats: Cache statistics
- POST /admin/cache/refresh: Queue every cached URL for background refresh
- DELETE /admin/cache: Delete all cached files and mappings
- GET /admin/schedule: Current scheduler configuration and context
- PUT /admin/schedule: Replace the scheduler configuration
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from presscache.api.deps import get_image_cache_service, get_scheduler
from presscache.api.schemas.responses import (
    ApiResponse,
    PurgeResult,
    RefreshSubmission,
    ScheduleStatus,
)
from presscache.models.cache import CacheStats
from presscache.models.schedule import SchedulerConfigUpdate
from presscache.services.image_cache import ImageCacheService
from presscache.services.scheduler import PublicationScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/cache/stats", response_model=ApiResponse[CacheStats])
async def get_cache_stats(
    service: ImageCacheService = Depends(get_image_cache_service),
) -> ApiResponse[CacheStats]:
    """Return image cache statistics."""
    return ApiResponse[CacheStats](data=await service.get_stats())


@router.post("/cache/refresh", response_model=ApiResponse[RefreshSubmission])
async def refresh_cache(
    tier: str = Query(default="stable", description="Content tier for the refresh"),
    service: ImageCacheService = Depends(get_image_cache_service),
) -> ApiResponse[RefreshSubmission]:
    """
    Queue every mapped URL for a background refresh.

    Returns immediately; refreshes run on the refresh queue worker. URLs
    already queued are not queued twice.
    """
    urls = service.mapping.urls()
    submitted = sum(1 for url in urls if service.refresh_queue.submit(url, tier))
    logger.info("Admin refresh: %d of %d URLs submitted", submitted, len(urls))
    return ApiResponse[RefreshSubmission](
        data=RefreshSubmission(
            submitted=submitted,
            already_queued=len(urls) - submitted,
            total=len(urls),
        )
    )


@router.delete("/cache", response_model=ApiResponse[PurgeResult])
async def purge_cache(
    service: ImageCacheService = Depends(get_image_cache_service),
) -> ApiResponse[PurgeResult]:
    """Delete every cached file and clear both mapping files."""
    bytes_freed = await service.purge()
    return ApiResponse[PurgeResult](data=PurgeResult(bytes_freed=bytes_freed))


def _schedule_status(scheduler: PublicationScheduler) -> ApiResponse[ScheduleStatus]:
    return ApiResponse[ScheduleStatus](
        data=ScheduleStatus(config=scheduler.config, context=scheduler.describe())
    )


@router.get("/schedule", response_model=ApiResponse[ScheduleStatus])
async def get_schedule(
    scheduler: PublicationScheduler = Depends(get_scheduler),
) -> ApiResponse[ScheduleStatus]:
    """Return the scheduler configuration and current scheduling context."""
    return _schedule_status(scheduler)


@router.put("/schedule", response_model=ApiResponse[ScheduleStatus])
async def update_schedule(
    config: SchedulerConfigUpdate,
    scheduler: PublicationScheduler = Depends(get_scheduler),
) -> ApiResponse[ScheduleStatus]:
    """
    Replace the scheduler configuration.

    The body must be a complete configuration object (``timezone``,
    ``businessHours``, ``businessDays``); a partial object or any
    other shape is rejected with 422 and the current configuration stays in
    effect.
    """
    scheduler.update_config(config)
    return _schedule_status(scheduler)
