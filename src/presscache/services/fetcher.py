"""
Upstream image fetcher.

Retrieves image bytes over HTTP(S) and classifies every failure into the
error taxonomy in ``presscache.exceptions`` so callers can decide whether a
retry is worthwhile.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from presscache import __version__
from presscache.exceptions import (
    FetchFailedError,
    FetchTimeoutError,
    UnsupportedSchemeError,
)

logger = logging.getLogger(__name__)

# Maximum image size: 10 MB
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024

DEFAULT_TIMEOUT = 5.0

USER_AGENT = f"presscache/{__version__}"

_ALLOWED_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True)
class FetchResult:
    """Bytes and content type returned by a successful fetch."""

    url: str
    content: bytes
    content_type: str


def validate_source_url(url: str) -> None:
    """Reject anything that is not an absolute http(s) URL with a host.

    Raises
    ------
    UnsupportedSchemeError
        If the scheme is not ``http``/``https`` or the host is missing.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES or not parts.hostname:
        raise UnsupportedSchemeError(url, scheme)


class Fetcher:
    """Bounded-concurrency HTTP fetcher for source images.

    Parameters
    ----------
    timeout : float
        Per-request timeout in seconds.
    max_concurrent_fetches : int
        Semaphore limit on simultaneous upstream requests.
    max_image_bytes : int
        Largest accepted body; larger responses are rejected while streaming.
    client : httpx.AsyncClient | None
        Shared client to use instead of opening one per fetch. The fetcher
        does not close a client it was given.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrent_fetches: int = 5,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_image_bytes = max_image_bytes
        self._semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._client = client

    @property
    def timeout(self) -> float:
        """Default per-request timeout in seconds."""
        return self._timeout

    @asynccontextmanager
    async def _open_client(self, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            yield client

    async def fetch(self, url: str, timeout: float | None = None) -> FetchResult:
        """Fetch an image from ``url``.

        Parameters
        ----------
        url : str
            Absolute http(s) source URL.
        timeout : float | None
            Override for the default timeout (used by cache warming).

        Returns
        -------
        FetchResult
            Body and media type of the image.

        Raises
        ------
        UnsupportedSchemeError
            For non-http(s) URLs, before any network access.
        FetchTimeoutError
            When the request exceeds its timeout.
        FetchFailedError
            For non-200 responses, non-image bodies, oversized bodies and
            transport errors.
        """
        validate_source_url(url)
        effective_timeout = timeout if timeout is not None else self._timeout

        async with self._semaphore:
            try:
                async with self._open_client(effective_timeout) as client:
                    async with client.stream(
                        "GET",
                        url,
                        timeout=effective_timeout,
                        headers={"User-Agent": USER_AGENT},
                    ) as response:
                        self._check_response(url, response)
                        content_type = response.headers.get("content-type", "")
                        content = await self._read_body(url, response)
            except httpx.TimeoutException as exc:
                logger.warning("Timeout fetching image: %s", url)
                raise FetchTimeoutError(url, effective_timeout) from exc
            except httpx.HTTPError as exc:
                logger.warning("HTTP error fetching image %s: %s", url, exc)
                raise FetchFailedError(
                    url, retryable=True, reason="transport_error"
                ) from exc

        logger.debug("Fetched %s (%d bytes, %s)", url, len(content), content_type)
        return FetchResult(url=url, content=content, content_type=content_type)

    @staticmethod
    def _check_response(url: str, response: httpx.Response) -> None:
        status_code = response.status_code

        # 404 / 410 → permanently gone
        if status_code in (404, 410):
            logger.info("Image not found (%d) at %s", status_code, url)
            raise FetchFailedError(url, status_code, retryable=False)

        # 429 / 5xx → transient
        if status_code == 429 or status_code >= 500:
            logger.warning("Transient error %d fetching image %s", status_code, url)
            raise FetchFailedError(url, status_code, retryable=True)

        if status_code != 200:
            logger.warning("Unexpected status %d fetching image %s", status_code, url)
            raise FetchFailedError(url, status_code, retryable=False)

        content_type = response.headers.get("content-type", "")
        if "image/" not in content_type.lower():
            logger.warning("Non-image content-type '%s' from %s", content_type, url)
            raise FetchFailedError(
                url, status_code, retryable=False, reason="invalid_content_type"
            )

    async def _read_body(self, url: str, response: httpx.Response) -> bytes:
        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self._max_image_bytes:
            logger.warning("Image too large (%s bytes declared) from %s", declared, url)
            raise FetchFailedError(url, response.status_code, reason="too_large")

        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self._max_image_bytes:
                logger.warning("Image too large (>%d bytes) from %s", self._max_image_bytes, url)
                raise FetchFailedError(url, response.status_code, reason="too_large")
            chunks.append(chunk)

        if received == 0:
            logger.warning("Empty image body from %s", url)
            raise FetchFailedError(url, response.status_code, reason="empty_body")
        return b"".join(chunks)
