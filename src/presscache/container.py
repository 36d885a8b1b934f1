"""
Dependency Injection Container for presscache.

This module provides a centralized container that builds the image cache
object graph from settings and hands out process-wide singletons:

- ``scheduler``: the one ``PublicationScheduler`` owning the schedule config
- ``image_cache_service``: the ``ImageCacheService`` with its store, mapping
  and fetcher
- ``proactive_refresher``: the periodic refresh loop

Usage
-----
    >>> from presscache.container import container
    >>> service = container.image_cache_service
    >>> service is container.image_cache_service
    True

Design Principles
-----------------
- Singletons are cached via @cached_property (lazy initialization)
- Settings can be swapped before first access for tests and the CLI
- Container can be reset for testing isolation
"""

from __future__ import annotations

from functools import cached_property

from presscache.config.settings import Settings, get_settings
from presscache.models.schedule import SchedulerConfig
from presscache.services.cache_store import CacheStore
from presscache.services.fetcher import Fetcher
from presscache.services.image_cache import ImageCacheService
from presscache.services.mapping_store import MappingStore
from presscache.services.refresh import ProactiveRefresher, RefreshQueue
from presscache.services.scheduler import PublicationScheduler


class Container:
    """
    Dependency injection container for presscache.

    Parameters
    ----------
    settings : Settings | None
        Settings to build from (default: loaded from the environment).

    Examples
    --------
        >>> container = Container(settings=Settings(cache_dir=tmp_path))
        >>> container.scheduler is container.image_cache_service.scheduler
        True
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        """Settings the container builds from."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def configure(self, settings: Settings) -> None:
        """Replace the settings and drop every cached singleton."""
        self._settings = settings
        self.reset()

    # -------------------------------------------------------------------------
    # Factory Methods (Transient - new instance per call)
    # -------------------------------------------------------------------------

    def create_cache_store(self) -> CacheStore:
        """Create a CacheStore rooted at the configured images directory."""
        images_dir = self.settings.images_dir
        if images_dir is None:
            raise ValueError("Settings.images_dir is not configured")
        return CacheStore(images_dir)

    def create_mapping_store(self) -> MappingStore:
        """Create a MappingStore over the configured mapping files."""
        url_map_path = self.settings.url_map_path
        record_map_path = self.settings.record_map_path
        if url_map_path is None or record_map_path is None:
            raise ValueError("Settings.url_map_path and record_map_path must be configured")
        return MappingStore(url_map_path, record_map_path)

    def create_fetcher(self) -> Fetcher:
        """Create a Fetcher with the configured limits."""
        return Fetcher(
            timeout=self.settings.fetch_timeout,
            max_concurrent_fetches=self.settings.max_concurrent_fetches,
            max_image_bytes=self.settings.max_image_bytes,
        )

    # -------------------------------------------------------------------------
    # Singleton Service Properties (Cached - same instance on repeated access)
    # -------------------------------------------------------------------------

    @cached_property
    def scheduler(self) -> PublicationScheduler:
        """
        Get the singleton PublicationScheduler.

        Built from the ``scheduler_*`` and ``business_*`` settings.
        """
        config = SchedulerConfig.model_validate(self.settings.scheduler_config_data())
        return PublicationScheduler(config=config)

    @cached_property
    def image_cache_service(self) -> ImageCacheService:
        """
        Get the singleton ImageCacheService.

        The service creates its own RefreshQueue, exposed as
        ``image_cache_service.refresh_queue``.
        """
        return ImageCacheService(
            store=self.create_cache_store(),
            mapping=self.create_mapping_store(),
            fetcher=self.create_fetcher(),
            scheduler=self.scheduler,
            retry_delay=self.settings.retry_delay,
            warm_timeout=self.settings.warm_timeout,
        )

    @property
    def refresh_queue(self) -> RefreshQueue:
        """The refresh queue owned by the image cache service."""
        return self.image_cache_service.refresh_queue

    @cached_property
    def proactive_refresher(self) -> ProactiveRefresher:
        """Get the singleton ProactiveRefresher for the default tier."""
        return ProactiveRefresher(
            service=self.image_cache_service,
            scheduler=self.scheduler,
            queue=self.refresh_queue,
            tier=self.settings.default_tier,
        )

    # -------------------------------------------------------------------------
    # Testing Support
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """
        Reset the container by clearing all cached singleton instances.

        It clears all @cached_property values from the instance __dict__.
        """
        for name in ("scheduler", "image_cache_service", "proactive_refresher"):
            self.__dict__.pop(name, None)


# Global container instance
container = Container()
