"""
Normalization of upstream attachment fields into proxyable image URLs.

Records from the content source expose images in several loose shapes: a
bare URL string, an attachment object (``url``, ``type``, ``thumbnails``), a
list of either, or an already-proxied ``/api/images/...`` path. These helpers
flatten them into plain source URLs and build proxy paths for the frontend.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote

PROXY_PREFIX = "/api/images/"

# Thumbnail sizes in order of preference for image attachments
_THUMBNAIL_PREFERENCE = ("large", "full", "small")


def _is_http_url(value: str) -> bool:
    lowered = value.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def best_attachment_url(attachment: Mapping[str, Any]) -> str | None:
    """Pick the URL to cache for a single attachment object.

    Image attachments with thumbnails use the large thumbnail (then full,
    then small); everything else uses the attachment's own ``url``.
    """
    content_type = attachment.get("type")
    thumbnails = attachment.get("thumbnails")
    is_image = not isinstance(content_type, str) or content_type.startswith("image/")
    if is_image and isinstance(thumbnails, Mapping):
        for size in _THUMBNAIL_PREFERENCE:
            thumbnail = thumbnails.get(size)
            if isinstance(thumbnail, Mapping) and isinstance(thumbnail.get("url"), str):
                return thumbnail["url"]
    url = attachment.get("url")
    return url if isinstance(url, str) else None


def _collect(field: Any, found: list[str]) -> None:
    if field is None:
        return
    if isinstance(field, str):
        value = field.strip()
        if value.startswith(PROXY_PREFIX):
            value = unwrap_proxy_path(value) or ""
        if _is_http_url(value):
            found.append(value)
        return
    if isinstance(field, Mapping):
        url = best_attachment_url(field)
        if url is not None:
            _collect(url, found)
            return
        for value in field.values():
            if isinstance(value, (Mapping, list, tuple)):
                _collect(value, found)
        return
    if isinstance(field, (list, tuple)):
        for item in field:
            _collect(item, found)


def extract_candidate_urls(field: Any) -> list[str]:
    """Flatten an attachment field into de-duplicated http(s) URLs.

    Parameters
    ----------
    field : Any
        String, attachment object, list of either, or nested mapping.

    Returns
    -------
    list[str]
        Source URLs in first-seen order.

    Examples
    --------
    >>> extract_candidate_urls([{"url": "https://a/x.jpg"}, "https://a/x.jpg"])
    ['https://a/x.jpg']
    """
    found: list[str] = []
    _collect(field, found)
    return list(dict.fromkeys(found))


def proxy_path(url: str) -> str:
    """Build the proxy path for a source URL.

    Already-proxied paths are returned unchanged.
    """
    if url.startswith(PROXY_PREFIX):
        return url
    return PROXY_PREFIX + quote(url, safe="")


def unwrap_proxy_path(value: str) -> str | None:
    """Recover the source URL from a proxy path, or ``None`` if not one."""
    if not value.startswith(PROXY_PREFIX):
        return None
    encoded = value[len(PROXY_PREFIX):]
    if not encoded:
        return None
    decoded = unquote(encoded)
    if "://" not in decoded:
        decoded = unquote(decoded)
    return decoded
