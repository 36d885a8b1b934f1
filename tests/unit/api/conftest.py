"""
Shared fixtures for API tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from presscache.api.deps import get_app_settings, get_image_cache_service, get_scheduler
from presscache.api.main import app
from presscache.config.settings import Settings
from presscache.services.image_cache import ImageCacheService


@pytest.fixture
async def async_client(
    image_cache_service: ImageCacheService, mock_settings: Settings
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client wired to the test image cache service."""
    app.dependency_overrides[get_image_cache_service] = lambda: image_cache_service
    app.dependency_overrides[get_scheduler] = lambda: image_cache_service.scheduler
    app.dependency_overrides[get_app_settings] = lambda: mock_settings

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        # Clean up the overrides
        app.dependency_overrides.clear()
