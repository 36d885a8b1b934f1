"""
Pytest configuration and fixtures for presscache tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from presscache.config.settings import Settings
from presscache.services.cache_store import CacheStore
from presscache.services.fetcher import Fetcher, FetchResult
from presscache.services.image_cache import ImageCacheService
from presscache.services.mapping_store import MappingStore
from presscache.services.scheduler import PublicationScheduler
from tests.factories.image_factory import ImageTestData


@pytest.fixture
def mock_settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary cache directory."""
    return Settings(
        cache_dir=tmp_path / "cache",
        log_level="INFO",
        debug=False,
        retry_delay=0.0,
        background_refresh_enabled=False,
    )


@pytest.fixture
def cache_store(tmp_path: Path) -> CacheStore:
    """Cache store over a temporary images directory."""
    return CacheStore(tmp_path / "cache" / "images")


@pytest.fixture
def mapping_store(tmp_path: Path) -> MappingStore:
    """Mapping store over temporary mapping files."""
    return MappingStore(
        tmp_path / "cache" / "url-to-filename-map.json",
        tmp_path / "cache" / "image-record-map.json",
    )


@pytest.fixture
def scheduler() -> PublicationScheduler:
    """Scheduler with the default configuration and tiers."""
    return PublicationScheduler()


@pytest.fixture
def mock_fetcher() -> AsyncMock:
    """Fetcher mock returning a JPEG for every URL."""
    fetcher = AsyncMock(spec=Fetcher)

    async def fetch(url: str, timeout: float | None = None) -> FetchResult:
        return FetchResult(url=url, content=ImageTestData.JPEG_BYTES, content_type="image/jpeg")

    fetcher.fetch.side_effect = fetch
    return fetcher


@pytest.fixture
def image_cache_service(
    cache_store: CacheStore,
    mapping_store: MappingStore,
    mock_fetcher: AsyncMock,
    scheduler: PublicationScheduler,
) -> ImageCacheService:
    """Image cache service wired to the mock fetcher."""
    return ImageCacheService(
        store=cache_store,
        mapping=mapping_store,
        fetcher=mock_fetcher,
        scheduler=scheduler,
        retry_delay=0.0,
    )


@pytest.fixture
def business_hours_now() -> datetime:
    """Wednesday 2024-01-10 11:00 America/New_York (16:00 UTC)."""
    return datetime(2024, 1, 10, 16, 0, tzinfo=timezone.utc)


@pytest.fixture
def off_hours_now() -> datetime:
    """Saturday 2024-01-13 11:00 America/New_York (16:00 UTC)."""
    return datetime(2024, 1, 13, 16, 0, tzinfo=timezone.utc)
