"""Image proxy endpoints.

This module provides the public image proxy:

- GET /images/{encoded_source_url}: Serve a source image from the cache
- GET /images?url=...: Same, with the source URL as a query parameter

Responses are always HTTP 200: the cached image, or a placeholder when the
image cannot be obtained. The ``X-Cache`` header reports ``HIT``, ``STALE``,
``MISS`` or ``PLACEHOLDER``.
"""

from __future__ import annotations

import logging
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Query
from fastapi import Path as PathParam
from starlette.responses import FileResponse, Response

from presscache.api.deps import get_app_settings, get_image_cache_service
from presscache.config.settings import Settings
from presscache.exceptions import ResolutionFailedError
from presscache.models.cache import ResolvedImage
from presscache.models.enums import CacheStatus
from presscache.services.cache_store import sniff_content_type
from presscache.services.image_cache import ImageCacheService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])

# ---------------------------------------------------------------------------
# Cache-Control headers
# ---------------------------------------------------------------------------
_CACHE_CONTROL_PLACEHOLDER = "public, max-age=300"  # 5 minutes

# ---------------------------------------------------------------------------
# Placeholder SVG
# ---------------------------------------------------------------------------
_PLACEHOLDER_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="320" height="180" '
    b'viewBox="0 0 320 180">'
    b'<rect width="320" height="180" fill="#e2e8f0"/>'
    b'<rect x="112" y="54" width="96" height="72" rx="6" fill="#94a3b8"/>'
    b'<circle cx="138" cy="78" r="9" fill="#e2e8f0"/>'
    b'<polygon points="120,118 148,92 166,108 180,96 200,118" fill="#e2e8f0"/>'
    b"</svg>"
)

_IMAGE_RESPONSES: dict[int | str, dict[str, object]] = {
    200: {
        "content": {
            "image/jpeg": {},
            "image/png": {},
            "image/gif": {},
            "image/webp": {},
            "image/avif": {},
            "image/svg+xml": {},
        },
        "description": "Cached image or placeholder",
    },
}


def decode_source_url(raw: str) -> str:
    """Recover the source URL from the proxy path segment.

    The framework has already percent-decoded the path once. A value that is
    still encoded (no ``://``) is decoded one more time.

    Raises
    ------
    ValueError
        If the value is empty.
    """
    value = raw.strip()
    if not value:
        raise ValueError("Empty source URL")
    if "://" not in value:
        value = unquote(value)
    return value


def placeholder_response(settings: Settings) -> Response:
    """Return the placeholder image response.

    Uses the file at ``settings.placeholder_path`` when it is readable,
    otherwise the built-in SVG.
    """
    body = _PLACEHOLDER_SVG
    media_type = "image/svg+xml"
    if settings.placeholder_path is not None:
        try:
            body = settings.placeholder_path.read_bytes()
            media_type = sniff_content_type(body[:64]) or "application/octet-stream"
        except OSError:
            logger.warning(
                "Placeholder %s unreadable; using built-in SVG",
                settings.placeholder_path,
            )
            body = _PLACEHOLDER_SVG
            media_type = "image/svg+xml"
    return Response(
        content=body,
        media_type=media_type,
        headers={
            "Cache-Control": _CACHE_CONTROL_PLACEHOLDER,
            "X-Cache": CacheStatus.PLACEHOLDER.value,
        },
    )


def cache_control_for(
    resolved: ResolvedImage, service: ImageCacheService, tier: str
) -> str:
    """Build the Cache-Control header for a resolved image."""
    if resolved.status is CacheStatus.STALE:
        refresh_interval = service.scheduler.get_refresh_interval(tier)
        return (
            "public, max-age=0, "
            f"stale-while-revalidate={int(refresh_interval.total_seconds())}"
        )
    return f"public, max-age={int(resolved.expires_in.total_seconds())}"


async def _serve(
    raw_url: str,
    tier: str | None,
    record: str | None,
    service: ImageCacheService,
    settings: Settings,
) -> Response:
    effective_tier = tier or settings.default_tier
    try:
        source_url = decode_source_url(raw_url)
        resolved = await service.resolve(
            source_url, tier=effective_tier, record_id=record
        )
    except ValueError:
        logger.info("Malformed image request %r; serving placeholder", raw_url[:200])
        return placeholder_response(settings)
    except ResolutionFailedError as e:
        logger.info(
            "Could not resolve %s (%s); serving placeholder", e.url[:200], e.reason
        )
        return placeholder_response(settings)

    return FileResponse(
        resolved.path,
        media_type=resolved.entry.content_type,
        headers={
            "Cache-Control": cache_control_for(resolved, service, effective_tier),
            "X-Cache": resolved.status.value,
        },
    )


@router.get("/images", responses=_IMAGE_RESPONSES, response_class=Response)
async def get_image_by_query(
    url: str = Query(..., description="Source image URL"),
    tier: str | None = Query(default=None, description="Content tier"),
    record: str | None = Query(default=None, description="Source record id"),
    service: ImageCacheService = Depends(get_image_cache_service),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Serve a source image, passing its URL as the ``url`` query parameter.

    Parameters
    ----------
    url : str
        Source image URL.
    tier : str | None
        Content tier (``critical``, ``important``, ``stable``); defaults to
        the configured default tier.
    record : str | None
        Source record id to associate with the image.

    Returns
    -------
    Response
        Image bytes with Content-Type, Cache-Control and X-Cache headers, or
        the placeholder.
    """
    return await _serve(url, tier, record, service, settings)


@router.get(
    "/images/{encoded_source_url:path}",
    responses=_IMAGE_RESPONSES,
    response_class=Response,
)
async def get_image(
    encoded_source_url: str = PathParam(
        ..., description="Percent-encoded source image URL"
    ),
    tier: str | None = Query(default=None, description="Content tier"),
    record: str | None = Query(default=None, description="Source record id"),
    service: ImageCacheService = Depends(get_image_cache_service),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Serve a source image from the local cache.

    Returns the cached image if available (stale copies are served while a
    background refresh runs), fetches and caches on first request, or
    returns a placeholder if the image cannot be obtained.

    Parameters
    ----------
    encoded_source_url : str
        Percent-encoded source image URL.
    tier : str | None
        Content tier; defaults to the configured default tier.
    record : str | None
        Source record id to associate with the image.

    Returns
    -------
    Response
        Image bytes with Content-Type, Cache-Control and X-Cache headers, or
        the placeholder.
    """
    return await _serve(encoded_source_url, tier, record, service, settings)
