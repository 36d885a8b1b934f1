"""
Background refresh of cached images.

``RefreshQueue`` is a de-duplicating work queue drained by a single worker
task; requests that find a stale entry submit to it and return immediately.
``ProactiveRefresher`` periodically submits every entry older than its
tier's current refresh interval, sleeping according to the publication
scheduler.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from presscache.models.enums import ContentTier

if TYPE_CHECKING:
    from presscache.models.cache import CacheEntry
    from presscache.services.image_cache import ImageCacheService
    from presscache.services.scheduler import PublicationScheduler

logger = logging.getLogger(__name__)


class Refreshable(Protocol):
    """Anything that can refresh a cached URL."""

    async def refresh(
        self, source_url: str, tier: ContentTier | str | None = None
    ) -> CacheEntry | None: ...


class RefreshQueue:
    """De-duplicating queue of URLs awaiting a background refresh.

    Parameters
    ----------
    service : Refreshable
        Target whose ``refresh`` is called for each queued URL.
    """

    def __init__(self, service: Refreshable) -> None:
        self._service = service
        self._queue: asyncio.Queue[tuple[str, ContentTier | str]] = asyncio.Queue()
        self._pending: set[str] = set()
        self._worker: asyncio.Task[None] | None = None
        self._accepting = True

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        """Whether the worker task is active."""
        return self._worker is not None and not self._worker.done()

    def is_pending(self, source_url: str) -> bool:
        return source_url in self._pending

    def submit(self, source_url: str, tier: ContentTier | str = ContentTier.STABLE) -> bool:
        """Queue ``source_url`` for refresh.

        Returns
        -------
        bool
            ``False`` when the URL was already queued or being refreshed, or
            the queue is disabled.
        """
        if not self._accepting:
            logger.debug("Background refresh disabled; not queuing %s", source_url)
            return False
        if source_url in self._pending:
            return False
        self._pending.add(source_url)
        self._queue.put_nowait((source_url, tier))
        logger.debug("Queued refresh for %s (tier=%s)", source_url, tier)
        return True

    def disable(self) -> None:
        """Stop accepting URLs and drop any already queued.

        For processes that never start a worker.
        """
        self._accepting = False
        dropped = len(self._pending)
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._pending.clear()
        logger.info("Background refresh disabled (%d queued URLs dropped)", dropped)

    def start(self) -> None:
        """Start the worker task if it is not already running."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("Refresh queue worker started")

    async def stop(self) -> None:
        """Cancel the worker task. Queued URLs stay queued."""
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info("Refresh queue worker stopped (%d pending)", len(self._pending))

    async def join(self) -> None:
        """Wait until every queued URL has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            source_url, tier = await self._queue.get()
            try:
                await self._service.refresh(source_url, tier)
            except Exception:
                logger.exception("Background refresh of %s failed", source_url)
            finally:
                self._pending.discard(source_url)
                self._queue.task_done()


class ProactiveRefresher:
    """Periodic refresh of entries that are due for their tier.

    Parameters
    ----------
    service : ImageCacheService
        Cache whose entries are inspected.
    scheduler : PublicationScheduler
        Supplies the refresh interval and the sleep between passes.
    queue : RefreshQueue
        Queue that due URLs are submitted to.
    tier : ContentTier | str
        Tier applied to every cached entry.
    """

    def __init__(
        self,
        service: ImageCacheService,
        scheduler: PublicationScheduler,
        queue: RefreshQueue,
        tier: ContentTier | str = ContentTier.STABLE,
    ) -> None:
        self._service = service
        self._scheduler = scheduler
        self._queue = queue
        self._tier = tier
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def run_once(self, now: datetime | None = None) -> int:
        """Submit every entry older than the current refresh interval.

        The cache directory is scanned on a worker thread.

        Returns
        -------
        int
            Number of URLs newly submitted.
        """
        interval = self._scheduler.get_refresh_interval(self._tier, now)
        due = await asyncio.to_thread(
            self._service.stale_entries, self._tier, now, older_than=interval
        )
        submitted = sum(
            1 for entry in due if self._queue.submit(entry.source_url, self._tier)
        )
        if due:
            logger.info(
                "Proactive refresh: %d due, %d submitted (interval %s)",
                len(due),
                submitted,
                interval,
            )
        return submitted

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            sleep_seconds = self._scheduler.next_wakeup(self._tier).total_seconds()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_seconds)
            except asyncio.TimeoutError:
                pass
            else:
                break
            try:
                await self.run_once()
            except Exception:
                logger.exception("Proactive refresh pass failed")
