"""
Cache models for the image cache.

Defines the cache entry view assembled from the mapping store and the cache
directory, the handle returned by a resolution, and summary models used by
the admin endpoints and the CLI.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, Field

from .enums import CacheStatus


class CacheEntry(BaseModel):
    """A cached copy of one source URL.

    ``local_filename`` is derived from ``source_url`` alone, so the same URL
    always maps to the same file. ``fetched_at`` is the time of the last
    successful write and never moves backwards for a given file.
    """

    source_url: str = Field(..., min_length=1)
    local_filename: str = Field(..., min_length=1)
    content_type: str
    size_bytes: int = Field(..., ge=0)
    fetched_at: datetime
    source_record_ids: set[str] = Field(default_factory=set)

    def age(self, now: datetime) -> timedelta:
        """Time elapsed since the entry was fetched."""
        return now - self.fetched_at


class ResolvedImage(BaseModel):
    """Servable result of resolving a source URL.

    Attributes
    ----------
    entry : CacheEntry
        The cache entry being served.
    path : Path
        Absolute path of the cached file.
    status : CacheStatus
        ``HIT``, ``STALE`` or ``MISS``.
    expires_in : timedelta
        Time until the entry turns stale for the requested tier (zero when
        already stale).
    """

    entry: CacheEntry
    path: Path
    status: CacheStatus
    expires_in: timedelta


class CacheStats(BaseModel):
    """Statistics about the image cache contents.

    Attributes
    ----------
    entry_count : int
        Number of mapped URLs whose file is present.
    missing_count : int
        Number of mapped URLs whose file is absent (evicted externally).
    orphan_count : int
        Number of cached files no URL maps to.
    total_size_bytes : int
        Total disk usage of cached files.
    oldest_fetch : datetime | None
        Fetch time of the oldest cached file.
    newest_fetch : datetime | None
        Fetch time of the newest cached file.
    """

    entry_count: int
    missing_count: int
    orphan_count: int
    total_size_bytes: int
    oldest_fetch: datetime | None
    newest_fetch: datetime | None


class WarmResult(BaseModel):
    """Result of a cache-warming operation.

    Attributes
    ----------
    downloaded : int
        Number of images successfully downloaded.
    skipped : int
        Number of images already cached (skipped).
    failed : int
        Number of images that failed to download.
    total : int
        Total number of URLs processed.
    """

    downloaded: int
    skipped: int
    failed: int
    total: int
