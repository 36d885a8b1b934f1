"""FastAPI application for presscache API."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from presscache import __version__
from presscache.api.routers import admin, health, images
from presscache.container import container
from presscache.logging_config import configure_logging

logger = logging.getLogger(__name__)

# Image paths embed signed upstream URLs; only this much is logged
MAX_LOGGED_PATH_LENGTH = 120


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    settings = container.settings
    configure_logging(settings.log_level)
    service = container.image_cache_service
    logger.info(
        "presscache %s starting: %d cached URLs in %s",
        __version__,
        len(service.mapping),
        service.store.directory,
    )
    container.scheduler.log_scheduling_context()

    if settings.background_refresh_enabled:
        service.refresh_queue.start()
        container.proactive_refresher.start()
    else:
        service.refresh_queue.disable()

    yield

    # Shutdown
    if settings.background_refresh_enabled:
        await container.proactive_refresher.stop()
        await service.refresh_queue.stop()


app = FastAPI(
    title="presscache API",
    description="Durable image proxy for expiring content-source attachments",
    version=__version__,
    lifespan=lifespan,
)


def _display_path(path: str) -> str:
    """Truncate long request paths for logging."""
    if len(path) <= MAX_LOGGED_PATH_LENGTH:
        return path
    return path[:MAX_LOGGED_PATH_LENGTH] + "..."


def _get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxied requests."""
    # Check for forwarded headers (common with reverse proxies)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()

    # Fall back to direct client host
    if request.client:
        return request.client.host
    return "unknown"


@app.middleware("http")
async def log_requests(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """
    Middleware to log incoming requests and outgoing responses.

    Logs request method, path, and client IP at DEBUG level.
    Logs response status code, cache status and timing with appropriate
    log level:
    - INFO for 2xx/3xx responses
    - WARNING for 4xx responses
    - ERROR for 5xx responses
    """
    start_time = time.perf_counter()

    method = request.method
    path = _display_path(request.url.path)
    client_ip = _get_client_ip(request)

    logger.debug("Request: %s %s from %s", method, path, client_ip)

    response = await call_next(request)

    duration = time.perf_counter() - start_time
    status_code = response.status_code

    # Determine log level based on status code
    if status_code >= 500:
        log_level = logging.ERROR
    elif status_code >= 400:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO

    logger.log(
        log_level,
        "Response: %s %s - %d %s(%.3fs)",
        method,
        path,
        status_code,
        f"[{response.headers['x-cache']}] " if "x-cache" in response.headers else "",
        duration,
    )

    return response


# Mount routers under /api prefix
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(images.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
