"""
Content-addressed image cache service.

Decides, for any externally sourced image URL, whether to serve the local
copy, fetch and store a new one, or serve a stale copy while a background
refresh replaces it. Concurrent requests for the same uncached URL share a
single upstream fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from functools import partial

from presscache.exceptions import (
    FetchFailedError,
    FetchTimeoutError,
    PresscacheError,
    ResolutionFailedError,
    UnsupportedSchemeError,
)
from presscache.models.cache import CacheEntry, CacheStats, ResolvedImage, WarmResult
from presscache.models.enums import CacheStatus, ContentTier
from presscache.services.cache_store import CacheStore, sniff_content_type
from presscache.services.fetcher import Fetcher, FetchResult, validate_source_url
from presscache.services.mapping_store import MappingStore
from presscache.services.naming import build_filename
from presscache.services.refresh import RefreshQueue
from presscache.services.scheduler import PublicationScheduler

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 0.5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def failure_reason(exc: BaseException) -> str:
    """Short machine-readable reason for a fetch or store failure."""
    if isinstance(exc, FetchTimeoutError):
        return "timeout"
    if isinstance(exc, (FetchFailedError, ResolutionFailedError)):
        return exc.reason
    if isinstance(exc, UnsupportedSchemeError):
        return "unsupported_scheme"
    if isinstance(exc, OSError):
        return "disk_error"
    return type(exc).__name__


class ImageCacheService:
    """Resolve source image URLs to locally cached files.

    Parameters
    ----------
    store : CacheStore
        Byte store for cached files.
    mapping : MappingStore
        Persistent URL to filename mapping.
    fetcher : Fetcher
        Upstream fetcher.
    scheduler : PublicationScheduler
        Timing oracle for cache expiry and refresh cadence.
    retry_delay : float
        Seconds to wait before the single retry of a transient failure.
    warm_timeout : float | None
        Fetch timeout used by ``warm`` (defaults to the fetcher's timeout).
    clock : Callable[[], datetime] | None
        Source of the current UTC time.
    refresh_queue : RefreshQueue | None
        Queue that receives stale URLs. One bound to this service is created
        when omitted.
    """

    def __init__(
        self,
        store: CacheStore,
        mapping: MappingStore,
        fetcher: Fetcher,
        scheduler: PublicationScheduler,
        *,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        warm_timeout: float | None = None,
        clock: Callable[[], datetime] | None = None,
        refresh_queue: RefreshQueue | None = None,
    ) -> None:
        self._store = store
        self._mapping = mapping
        self._fetcher = fetcher
        self._scheduler = scheduler
        self._retry_delay = retry_delay
        self._warm_timeout = warm_timeout
        self._clock = clock or _utcnow
        self._inflight: dict[str, asyncio.Task[CacheEntry]] = {}
        self.refresh_queue = refresh_queue if refresh_queue is not None else RefreshQueue(self)

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def mapping(self) -> MappingStore:
        return self._mapping

    @property
    def scheduler(self) -> PublicationScheduler:
        return self._scheduler

    @property
    def passthrough(self) -> bool:
        """Whether the cache directory is unusable and every lookup fails."""
        return self._store.passthrough

    def inflight_count(self) -> int:
        """Number of upstream fetches currently in progress."""
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get_entry(self, source_url: str) -> CacheEntry | None:
        """Return the cache entry for ``source_url`` if its file is present."""
        filename = self._mapping.lookup(source_url)
        if filename is None:
            return None
        stat = self._store.stat(filename)
        if stat is None:
            return None
        return CacheEntry(
            source_url=source_url,
            local_filename=filename,
            content_type=self._store.detect_content_type(filename),
            size_bytes=stat.size,
            fetched_at=stat.mtime,
            source_record_ids=self._mapping.record_ids_for(filename),
        )

    async def _load_entry(self, source_url: str) -> CacheEntry | None:
        """``get_entry`` off the event loop; unmapped URLs never touch disk."""
        if self._mapping.lookup(source_url) is None:
            return None
        return await asyncio.to_thread(self.get_entry, source_url)

    def entries(self) -> list[CacheEntry]:
        """All mapped entries whose file is present."""
        result = []
        for url in self._mapping.urls():
            entry = self.get_entry(url)
            if entry is not None:
                result.append(entry)
        return result

    def is_stale(
        self,
        entry: CacheEntry,
        tier: ContentTier | str = ContentTier.STABLE,
        now: datetime | None = None,
    ) -> bool:
        """Whether ``entry`` is older than the tier's cache expiry."""
        now = now or self._clock()
        return entry.age(now) > self._scheduler.get_cache_expiry(tier)

    def stale_entries(
        self,
        tier: ContentTier | str = ContentTier.STABLE,
        now: datetime | None = None,
        older_than: timedelta | None = None,
    ) -> list[CacheEntry]:
        """Entries older than ``older_than`` (default: the tier's cache expiry)."""
        now = now or self._clock()
        threshold = older_than if older_than is not None else self._scheduler.get_cache_expiry(tier)
        return [entry for entry in self.entries() if entry.age(now) > threshold]

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    async def _fetch_with_retry(self, url: str, timeout: float | None) -> FetchResult:
        """Fetch once, retrying a single time after a transient failure."""
        try:
            return await self._fetcher.fetch(url, timeout=timeout)
        except (FetchFailedError, FetchTimeoutError) as exc:
            if not exc.retryable:
                raise
            logger.info(
                "Retrying %s in %.1fs after transient failure: %s",
                url,
                self._retry_delay,
                exc.message,
            )
        await asyncio.sleep(self._retry_delay)
        return await self._fetcher.fetch(url, timeout=timeout)

    async def _fetch_and_store(self, url: str, timeout: float | None) -> CacheEntry:
        """Fetch ``url``, write the bytes and record the mapping."""
        result = await self._fetch_with_retry(url, timeout)

        # A refreshed URL keeps its filename even if the upstream type changed
        filename = self._mapping.lookup(url) or build_filename(url, result.content_type)
        self._mapping.check(url, filename)

        stat = await self._store.write(filename, result.content)
        await self._mapping.record(url, filename)

        content_type = sniff_content_type(result.content[:64]) or (
            result.content_type.split(";", 1)[0].strip().lower()
        )
        return CacheEntry(
            source_url=url,
            local_filename=filename,
            content_type=content_type,
            size_bytes=stat.size,
            fetched_at=stat.mtime,
            source_record_ids=self._mapping.record_ids_for(filename),
        )

    def _fetch_task(self, url: str, timeout: float | None = None) -> asyncio.Task[CacheEntry]:
        """Return the in-flight fetch for ``url``, starting one if needed."""
        task = self._inflight.get(url)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(url, timeout))
            self._inflight[url] = task
            task.add_done_callback(partial(self._on_fetch_done, url))
        return task

    def _on_fetch_done(self, url: str, task: asyncio.Task[CacheEntry]) -> None:
        if self._inflight.get(url) is task:
            del self._inflight[url]
        if not task.cancelled():
            # Mark the exception retrieved; awaiting callers handle it
            task.exception()

    async def _add_record_id(self, entry: CacheEntry, record_id: str | None) -> CacheEntry:
        if not record_id or record_id in entry.source_record_ids:
            return entry
        await self._mapping.record(entry.source_url, entry.local_filename, record_id)
        return entry.model_copy(
            update={"source_record_ids": entry.source_record_ids | {record_id}}
        )

    # ------------------------------------------------------------------
    # Public API: resolve
    # ------------------------------------------------------------------

    async def resolve(
        self,
        source_url: str,
        tier: ContentTier | str = ContentTier.STABLE,
        record_id: str | None = None,
    ) -> ResolvedImage:
        """Resolve a source URL to a servable cached file.

        Flow:
        1. Mapped and file present -> serve it (``HIT``, or ``STALE`` with a
           background refresh submitted when older than the tier's expiry).
        2. Otherwise fetch (coalesced with concurrent callers), store, map
           and serve (``MISS``).
        3. Fetch failure with no servable file -> ``ResolutionFailedError``.

        Parameters
        ----------
        source_url : str
            Absolute http(s) URL of the source image.
        tier : ContentTier | str
            Content volatility tier; unknown values behave as ``stable``.
        record_id : str | None
            Source record that referenced the image.

        Returns
        -------
        ResolvedImage
            Entry, file path, cache status and time until stale.

        Raises
        ------
        ResolutionFailedError
            If neither a cached nor a freshly fetched copy is available.
        """
        if self.passthrough:
            raise ResolutionFailedError(source_url, "passthrough")
        try:
            validate_source_url(source_url)
        except UnsupportedSchemeError as exc:
            raise ResolutionFailedError(source_url, "unsupported_scheme") from exc

        expiry = self._scheduler.get_cache_expiry(tier)
        entry = await self._load_entry(source_url)

        if entry is not None:
            entry = await self._add_record_id(entry, record_id)
            path = self._store.path_for(entry.local_filename)
            age = entry.age(self._clock())
            if age > expiry:
                submitted = self.refresh_queue.submit(source_url, tier)
                logger.debug(
                    "Cache STALE for %s (age %s, submitted=%s)", source_url, age, submitted
                )
                return ResolvedImage(
                    entry=entry, path=path, status=CacheStatus.STALE, expires_in=timedelta(0)
                )
            logger.debug("Cache HIT for %s", source_url)
            return ResolvedImage(
                entry=entry,
                path=path,
                status=CacheStatus.HIT,
                expires_in=max(expiry - age, timedelta(0)),
            )

        if self._mapping.lookup(source_url) is not None:
            logger.info("Cached file for %s is missing; refetching", source_url)

        try:
            entry = await asyncio.shield(self._fetch_task(source_url))
            entry = await self._add_record_id(entry, record_id)
        except (PresscacheError, OSError) as exc:
            reason = failure_reason(exc)
            logger.info("Failed to resolve %s (%s)", source_url, reason)
            raise ResolutionFailedError(source_url, reason) from exc

        return ResolvedImage(
            entry=entry,
            path=self._store.path_for(entry.local_filename),
            status=CacheStatus.MISS,
            expires_in=expiry,
        )

    # ------------------------------------------------------------------
    # Public API: refresh
    # ------------------------------------------------------------------

    async def refresh(
        self,
        source_url: str,
        tier: ContentTier | str | None = None,
    ) -> CacheEntry | None:
        """Re-fetch ``source_url`` and replace the cached copy.

        A failed refresh keeps the previous bytes and returns ``None``.

        Parameters
        ----------
        source_url : str
            URL to refresh.
        tier : ContentTier | str | None
            Tier the refresh was requested for (logging only).

        Returns
        -------
        CacheEntry | None
            The refreshed entry, or ``None`` when the refresh failed.
        """
        if self.passthrough:
            return None
        try:
            entry = await asyncio.shield(self._fetch_task(source_url))
        except (PresscacheError, OSError) as exc:
            logger.warning(
                "Refresh failed for %s (tier=%s); keeping previous copy: %s",
                source_url,
                tier,
                exc,
            )
            return None
        logger.info("Refreshed %s (%d bytes)", source_url, entry.size_bytes)
        return entry

    # ------------------------------------------------------------------
    # Public API: warm
    # ------------------------------------------------------------------

    async def warm(
        self,
        urls: Iterable[str],
        tier: ContentTier | str = ContentTier.STABLE,
        *,
        delay: float = 0.5,
        limit: int | None = None,
        dry_run: bool = False,
        progress_callback: Callable[[str, str], None] | None = None,
    ) -> WarmResult:
        """Pre-download images that are not cached or are stale.

        Parameters
        ----------
        urls : Iterable[str]
            Source URLs to warm. Duplicates are processed once.
        tier : ContentTier | str
            Tier used to decide whether a cached copy is still fresh.
        delay : float
            Seconds to sleep between successive downloads (default 0.5).
        limit : int | None
            Maximum number of images to download.  ``None`` means unlimited.
        dry_run : bool
            If ``True``, count what *would* be downloaded without fetching.
        progress_callback : Callable[[str, str], None] | None
            Optional ``(url, status)`` callback for CLI progress.

        Returns
        -------
        WarmResult
            Counts of downloaded / skipped / failed / total.
        """
        downloaded = 0
        skipped = 0
        failed = 0
        unique_urls = list(dict.fromkeys(url.strip() for url in urls if url.strip()))
        timeout = self._warm_timeout

        def _report(url: str, status: str) -> None:
            if progress_callback is not None:
                progress_callback(url, status)

        for url in unique_urls:
            entry = await self._load_entry(url)
            if entry is not None and not self.is_stale(entry, tier):
                skipped += 1
                _report(url, "skipped")
                continue

            if dry_run:
                downloaded += 1  # counts as "would download"
                _report(url, "dry_run")
                continue

            if limit is not None and downloaded >= limit:
                skipped += 1
                _report(url, "limit_reached")
                continue

            try:
                await asyncio.shield(self._fetch_task(url, timeout))
            except (PresscacheError, OSError) as exc:
                failed += 1
                _report(url, f"failed:{failure_reason(exc)}")
            else:
                downloaded += 1
                _report(url, "downloaded")

            # Rate limiting between fetches
            if delay > 0:
                await asyncio.sleep(delay)

        logger.info(
            "Warm complete: downloaded=%d skipped=%d failed=%d total=%d",
            downloaded,
            skipped,
            failed,
            len(unique_urls),
        )
        return WarmResult(
            downloaded=downloaded,
            skipped=skipped,
            failed=failed,
            total=len(unique_urls),
        )

    # ------------------------------------------------------------------
    # Public API: get_stats / purge
    # ------------------------------------------------------------------

    async def get_stats(self) -> CacheStats:
        """Compute statistics about the image cache contents.

        Returns
        -------
        CacheStats
            Mapped, missing and orphaned file counts, total size, and the
            oldest/newest fetch times of mapped files.
        """
        mapped = self._mapping.filenames()
        entry_count = 0
        orphan_count = 0
        total_size_bytes = 0
        oldest_fetch: datetime | None = None
        newest_fetch: datetime | None = None

        present: set[str] = set()
        for filename in self._store.iter_files():
            stat = self._store.stat(filename)
            if stat is None:
                continue
            present.add(filename)
            total_size_bytes += stat.size
            if filename not in mapped:
                orphan_count += 1
                continue
            entry_count += 1
            if oldest_fetch is None or stat.mtime < oldest_fetch:
                oldest_fetch = stat.mtime
            if newest_fetch is None or stat.mtime > newest_fetch:
                newest_fetch = stat.mtime

        missing_count = len(mapped - present)

        logger.info(
            "Cache stats: entries=%d missing=%d orphans=%d total_size=%d bytes",
            entry_count,
            missing_count,
            orphan_count,
            total_size_bytes,
        )
        return CacheStats(
            entry_count=entry_count,
            missing_count=missing_count,
            orphan_count=orphan_count,
            total_size_bytes=total_size_bytes,
            oldest_fetch=oldest_fetch,
            newest_fetch=newest_fetch,
        )

    async def purge(self) -> int:
        """Delete every cached file and clear both mappings.

        Returns
        -------
        int
            Total bytes freed.
        """
        bytes_freed = await self._store.purge()
        await self._mapping.clear()
        logger.info("Purge complete: freed %d bytes", bytes_freed)
        return bytes_freed
