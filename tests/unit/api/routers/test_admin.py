"""
Unit tests for the cache and schedule administration endpoints.
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from presscache.services.image_cache import ImageCacheService
from tests.factories.image_factory import ImageTestData

# CRITICAL: This line ensures async tests work with coverage
pytestmark = pytest.mark.asyncio


class TestCacheAdmin:
    """Tests for /api/admin/cache endpoints."""

    async def test_stats(
        self, async_client: AsyncClient, image_cache_service: ImageCacheService
    ) -> None:
        """Test stats report cached entries and size."""
        await image_cache_service.resolve(ImageTestData.SOURCE_URL)

        response = await async_client.get("/api/admin/cache/stats")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["entry_count"] == 1
        assert data["missing_count"] == 0
        assert data["orphan_count"] == 0
        assert data["total_size_bytes"] == len(ImageTestData.JPEG_BYTES)
        assert data["oldest_fetch"] is not None

    async def test_refresh_submits_every_url_once(
        self, async_client: AsyncClient, image_cache_service: ImageCacheService
    ) -> None:
        """Test a bulk refresh queues each mapped URL and skips queued ones."""
        await image_cache_service.resolve(ImageTestData.SOURCE_URL)
        await image_cache_service.resolve(ImageTestData.OTHER_URL)
        image_cache_service.refresh_queue.submit(ImageTestData.OTHER_URL)

        response = await async_client.post(
            "/api/admin/cache/refresh", params={"tier": "critical"}
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"submitted": 1, "already_queued": 1, "total": 2}
        assert image_cache_service.refresh_queue.is_pending(ImageTestData.SOURCE_URL)

    async def test_purge(
        self, async_client: AsyncClient, image_cache_service: ImageCacheService
    ) -> None:
        """Test DELETE /api/admin/cache removes files and mappings."""
        await image_cache_service.resolve(ImageTestData.SOURCE_URL)

        response = await async_client.delete("/api/admin/cache")

        assert response.status_code == 200
        assert response.json()["data"]["bytes_freed"] == len(ImageTestData.JPEG_BYTES)
        assert len(image_cache_service.mapping) == 0


class TestScheduleAdmin:
    """Tests for /api/admin/schedule endpoints."""

    async def test_get_schedule(self, async_client: AsyncClient) -> None:
        """Test the default configuration and context are returned."""
        response = await async_client.get("/api/admin/schedule")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["config"]["timezone"] == "America/New_York"
        assert data["config"]["businessHours"] == {"start": 9, "end": 17}
        assert sorted(data["config"]["businessDays"]) == [1, 2, 3, 4, 5]
        assert set(data["context"]["tiers"]) == {"critical", "important", "stable"}

    async def test_put_schedule(
        self, async_client: AsyncClient, image_cache_service: ImageCacheService
    ) -> None:
        """Test a valid configuration replaces the current one."""
        body = {
            "timezone": "Europe/London",
            "businessHours": {"start": 8, "end": 18},
            "businessDays": [1, 2, 3, 4, 5, 6],
        }

        response = await async_client.put("/api/admin/schedule", json=body)

        assert response.status_code == 200
        assert response.json()["data"]["config"]["timezone"] == "Europe/London"
        assert image_cache_service.scheduler.config.timezone == "Europe/London"
        assert image_cache_service.scheduler.config.business_days == frozenset(
            {1, 2, 3, 4, 5, 6}
        )

    @pytest.mark.parametrize(
        "body",
        [
            {"timezone": "Not/AZone"},
            {"businessHours": {"start": 18, "end": 8}},
            {"businessDays": [9]},
            {"businessHours": "9-17"},
            {"extra": "field"},
            ["not", "an", "object"],
        ],
    )
    async def test_put_invalid_schedule_rejected(
        self,
        async_client: AsyncClient,
        image_cache_service: ImageCacheService,
        body: object,
    ) -> None:
        """Test invalid shapes return 422 and leave the configuration alone."""
        previous = image_cache_service.scheduler.config

        response = await async_client.put("/api/admin/schedule", json=body)

        assert response.status_code == 422
        assert image_cache_service.scheduler.config is previous

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"timezone": "UTC"},
            {"timezone": "UTC", "businessHours": {"start": 9, "end": 17}},
        ],
    )
    async def test_put_partial_schedule_rejected(
        self,
        async_client: AsyncClient,
        image_cache_service: ImageCacheService,
        body: dict,
    ) -> None:
        """Test partial bodies do not reset omitted fields to defaults."""
        scheduler = image_cache_service.scheduler
        custom = scheduler.update_config(
            {
                "timezone": "Europe/Berlin",
                "businessHours": {"start": 7, "end": 19},
                "businessDays": [0, 6],
            }
        )

        response = await async_client.put("/api/admin/schedule", json=body)

        assert response.status_code == 422
        assert scheduler.config is custom
        assert scheduler.config.timezone == "Europe/Berlin"
        assert scheduler.config.business_days == frozenset({0, 6})
