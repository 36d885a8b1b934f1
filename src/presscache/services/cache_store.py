"""
Flat-directory byte store for cached images.

Files are written to a temp file in the same directory and renamed into
place, so readers never observe partial content. Blocking disk I/O runs in a
worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple
from uuid import uuid4

logger = logging.getLogger(__name__)

_EXTENSION_CONTENT_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".avif": "image/avif",
}

_FALLBACK_CONTENT_TYPE = "application/octet-stream"


class FileStat(NamedTuple):
    """Size and last-write time of a cached file."""

    size: int
    mtime: datetime


def sniff_content_type(header: bytes) -> str | None:
    """Detect an image content type from the first bytes of a file.

    Parameters
    ----------
    header : bytes
        At least the first 12 bytes of the file (fewer is tolerated).

    Returns
    -------
    str | None
        MIME type, or ``None`` when the signature is not recognised.
    """
    if header[:2] == b"\xff\xd8":
        return "image/jpeg"
    if header[:4] == b"\x89PNG":
        return "image/png"
    if header[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    if header[4:12] in (b"ftypavif", b"ftypavis"):
        return "image/avif"
    stripped = header.lstrip()
    if stripped.startswith(b"<svg") or stripped.startswith(b"<?xml"):
        return "image/svg+xml"
    return None


class CacheStore:
    """Byte store rooted at a single flat directory.

    Parameters
    ----------
    directory : Path
        Directory holding the cached files.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory
        self._passthrough = False
        self.ensure_directory()

    @property
    def directory(self) -> Path:
        """Root directory of the store."""
        return self._directory

    @property
    def passthrough(self) -> bool:
        """Whether the directory could not be created."""
        return self._passthrough

    def ensure_directory(self) -> None:
        """Create the cache directory if it does not exist.

        If directory creation fails, the store falls back to passthrough
        mode and the image cache serves placeholders for every request.
        """
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._passthrough = False
            logger.debug("Image cache directory ready: %s", self._directory)
        except OSError:
            logger.error(
                "Failed to create image cache directory %s; "
                "falling back to passthrough mode",
                self._directory,
                exc_info=True,
            )
            self._passthrough = True

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def path_for(self, filename: str) -> Path:
        """Return the absolute path of a cached file.

        Raises
        ------
        ValueError
            If the filename is empty, contains a path separator or starts
            with ``.`` (reserved for temp files).
        """
        if (
            not filename
            or filename.startswith(".")
            or "/" in filename
            or "\\" in filename
            or "\x00" in filename
        ):
            raise ValueError(f"Invalid cache filename: {filename!r}")
        return self._directory / filename

    def exists(self, filename: str) -> bool:
        """Whether a cached file is present."""
        return self.path_for(filename).is_file()

    def stat(self, filename: str) -> FileStat | None:
        """Return size and UTC modification time, or ``None`` if absent."""
        try:
            st = self.path_for(filename).stat()
        except FileNotFoundError:
            return None
        return FileStat(
            size=st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def detect_content_type(self, filename: str) -> str:
        """Detect a cached file's content type.

        Magic bytes take precedence; the filename extension is used when the
        signature is unknown.
        """
        path = self.path_for(filename)
        try:
            with path.open("rb") as f:
                header = f.read(64)
        except OSError:
            header = b""
        sniffed = sniff_content_type(header)
        if sniffed is not None:
            return sniffed
        return _EXTENSION_CONTENT_TYPES.get(path.suffix.lower(), _FALLBACK_CONTENT_TYPE)

    def iter_files(self) -> Iterator[str]:
        """Yield the names of cached files, skipping temp and hidden files."""
        if not self._directory.is_dir():
            return
        for path in sorted(self._directory.iterdir()):
            if path.name.startswith(".") or not path.is_file():
                continue
            yield path.name

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def write(self, filename: str, data: bytes) -> FileStat:
        """Atomically write ``data`` under ``filename``.

        Returns
        -------
        FileStat
            Stat of the file after the write.

        Raises
        ------
        OSError
            If the write or rename fails. The temp file is removed.
        """
        path = self.path_for(filename)
        return await asyncio.to_thread(self._write_sync, path, data)

    @staticmethod
    def _write_sync(path: Path, data: bytes) -> FileStat:
        previous_mtime: float | None = None
        try:
            previous_mtime = path.stat().st_mtime
        except FileNotFoundError:
            pass

        # Atomic write: temp file → rename (POSIX atomic rename)
        tmp_path = path.with_name(f".{path.stem}.tmp.{uuid4()}")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        st = path.stat()
        mtime = st.st_mtime
        # Last-write time must not move backwards across refreshes
        if previous_mtime is not None and mtime < previous_mtime:
            os.utime(path, (previous_mtime, previous_mtime))
            mtime = previous_mtime
        logger.info("Cached image: %s (%d bytes)", path, len(data))
        return FileStat(
            size=st.st_size, mtime=datetime.fromtimestamp(mtime, tz=timezone.utc)
        )

    async def read(self, filename: str) -> bytes | None:
        """Read a cached file, or ``None`` if it does not exist."""
        path = self.path_for(filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None

    async def purge(self) -> int:
        """Delete every file in the cache directory, including stale temps.

        The directory itself is preserved.

        Returns
        -------
        int
            Total bytes freed.
        """
        return await asyncio.to_thread(self._purge_sync)

    def _purge_sync(self) -> int:
        bytes_freed = 0
        if not self._directory.is_dir():
            return bytes_freed

        for path in self._directory.iterdir():
            if not path.is_file():
                continue
            try:
                size = path.stat().st_size
                path.unlink()
                bytes_freed += size
            except OSError:
                logger.warning(
                    "Failed to delete cached file: %s",
                    path,
                    exc_info=True,
                )

        logger.info("Purged %s: freed %d bytes", self._directory, bytes_freed)
        return bytes_freed
