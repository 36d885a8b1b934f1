"""
Services module for presscache.

Contains the image cache core (naming, mapping, fetching, storage), the
publication scheduler and the background refresh machinery.
"""

from __future__ import annotations

from presscache.services.cache_store import CacheStore
from presscache.services.fetcher import Fetcher, FetchResult
from presscache.services.image_cache import ImageCacheService
from presscache.services.mapping_store import MappingStore
from presscache.services.naming import build_filename, extension_for_content_type
from presscache.services.refresh import ProactiveRefresher, RefreshQueue
from presscache.services.scheduler import PublicationScheduler

__all__: list[str] = [
    "CacheStore",
    "FetchResult",
    "Fetcher",
    "ImageCacheService",
    "MappingStore",
    "ProactiveRefresher",
    "PublicationScheduler",
    "RefreshQueue",
    "build_filename",
    "extension_for_content_type",
]
