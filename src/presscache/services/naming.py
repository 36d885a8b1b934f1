"""
Content-hash naming for cached images.

A cached file's name is a pure function of its source URL: the first 128
bits of the SHA-256 digest of the exact URL string, followed by an extension
derived from the upstream content type. Time-limited query tokens are part of
the URL, so each signed variant gets its own file.
"""

from __future__ import annotations

import hashlib

# Length of the hex digest prefix (128 bits)
DIGEST_LENGTH = 32

DEFAULT_EXTENSION = ".bin"

_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/avif": ".avif",
}


def extension_for_content_type(content_type: str | None) -> str:
    """Map a content type to a file extension.

    Parameters are stripped and matching is case-insensitive, so
    ``"IMAGE/PNG; charset=binary"`` maps to ``.png``.

    Parameters
    ----------
    content_type : str | None
        Upstream ``Content-Type`` header value.

    Returns
    -------
    str
        Extension including the leading dot, ``.bin`` when unknown.
    """
    if not content_type:
        return DEFAULT_EXTENSION
    media_type = content_type.split(";", 1)[0].strip().lower()
    return _EXTENSIONS.get(media_type, DEFAULT_EXTENSION)


def url_digest(url: str) -> str:
    """Return the 32-character hex digest used as a filename stem."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def build_filename(url: str, content_type: str | None = None) -> str:
    """Build the local cache filename for a source URL.

    Parameters
    ----------
    url : str
        Exact source URL, including any query string.
    content_type : str | None
        Upstream content type, used only for the extension.

    Returns
    -------
    str
        Filename such as ``"3f2a...9c.jpg"``.

    Examples
    --------
    >>> build_filename("https://example.com/a.jpg", "image/jpeg")[-4:]
    '.jpg'
    """
    return url_digest(url) + extension_for_content_type(content_type)
