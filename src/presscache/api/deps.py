"""FastAPI dependencies for API endpoints."""

from __future__ import annotations

from presscache.config.settings import Settings
from presscache.container import container
from presscache.services.image_cache import ImageCacheService
from presscache.services.scheduler import PublicationScheduler


def get_app_settings() -> Settings:
    """
    Dependency for application settings.

    Returns
    -------
    Settings
        The settings the container was configured with.
    """
    return container.settings


def get_image_cache_service() -> ImageCacheService:
    """
    Dependency for the image cache service.

    Returns the container singleton, so every request shares one in-flight
    fetch table and one refresh queue.

    Returns
    -------
    ImageCacheService
        The process-wide image cache service.
    """
    return container.image_cache_service


def get_scheduler() -> PublicationScheduler:
    """
    Dependency for the publication scheduler.

    Returns
    -------
    PublicationScheduler
        The process-wide scheduler.
    """
    return container.scheduler
