"""
Persistent URL-to-filename mapping for the image cache.

Two JSON objects are kept on disk:

- ``url-to-filename-map.json``: source URL -> local filename
- ``image-record-map.json``: local filename -> sorted list of source record ids

The mapping is append-and-update only. A URL is never remapped to a different
filename and a filename is never reassigned to a different URL; either attempt
raises ``MappingConflictError`` and leaves the mapping unchanged.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any
from uuid import uuid4

from presscache.exceptions import MappingConflictError

logger = logging.getLogger(__name__)


def _load_json_object(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``.

    A missing, unreadable or malformed file is logged and treated as empty.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Mapping file %s not found; starting empty", path)
        return {}
    except OSError:
        logger.warning("Could not read mapping file %s; starting empty", path, exc_info=True)
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt mapping file %s (%s); starting empty", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning(
            "Mapping file %s holds %s, not an object; starting empty",
            path,
            type(data).__name__,
        )
        return {}
    return data


def _write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write ``data`` as pretty-printed JSON via temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp.{uuid4()}")
    try:
        tmp_path.write_text(
            json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class MappingStore:
    """Bidirectional source URL <-> local filename mapping with record ids.

    Writers for the same URL are serialized by a per-URL ``asyncio.Lock``.
    Files are written on a worker thread under a single save lock; each save
    snapshots the in-memory state once it holds the lock, so an older
    snapshot never replaces a newer one.

    Parameters
    ----------
    url_map_path : Path
        Location of ``url-to-filename-map.json``.
    record_map_path : Path
        Location of ``image-record-map.json``.
    """

    def __init__(self, url_map_path: Path, record_map_path: Path) -> None:
        self._url_map_path = url_map_path
        self._record_map_path = record_map_path
        self._url_to_filename: dict[str, str] = {}
        self._filename_to_url: dict[str, str] = {}
        self._record_ids: dict[str, set[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._save_lock = asyncio.Lock()
        self.load()

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    def load(self) -> None:
        """(Re)load both mapping files from disk."""
        self._url_to_filename = {}
        self._filename_to_url = {}
        for url, filename in _load_json_object(self._url_map_path).items():
            if not isinstance(filename, str) or not filename:
                logger.warning("Ignoring invalid mapping entry for %s: %r", url, filename)
                continue
            owner = self._filename_to_url.get(filename)
            if owner is not None:
                logger.warning(
                    "Filename %s is mapped from both %s and %s; keeping the first",
                    filename,
                    owner,
                    url,
                )
                continue
            self._url_to_filename[url] = filename
            self._filename_to_url[filename] = url

        self._record_ids = {}
        for filename, ids in _load_json_object(self._record_map_path).items():
            if isinstance(ids, str):
                ids = [ids]
            if not isinstance(ids, list):
                logger.warning("Ignoring invalid record ids for %s: %r", filename, ids)
                continue
            self._record_ids[filename] = {str(record_id) for record_id in ids}

        logger.debug(
            "Loaded %d URL mappings and %d record mappings",
            len(self._url_to_filename),
            len(self._record_ids),
        )

    async def _save_url_map(self) -> None:
        async with self._save_lock:
            snapshot = dict(self._url_to_filename)
            try:
                await asyncio.to_thread(_write_json_atomic, self._url_map_path, snapshot)
            except OSError:
                logger.error(
                    "Failed to persist URL map to %s; in-memory mapping kept",
                    self._url_map_path,
                    exc_info=True,
                )

    async def _save_record_map(self) -> None:
        async with self._save_lock:
            snapshot = {filename: sorted(ids) for filename, ids in self._record_ids.items()}
            try:
                await asyncio.to_thread(
                    _write_json_atomic, self._record_map_path, snapshot
                )
            except OSError:
                logger.error(
                    "Failed to persist record map to %s; in-memory mapping kept",
                    self._record_map_path,
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lookup(self, source_url: str) -> str | None:
        """Return the local filename for ``source_url``, or ``None``."""
        return self._url_to_filename.get(source_url)

    def owner_of(self, local_filename: str) -> str | None:
        """Return the URL that owns ``local_filename``, or ``None``."""
        return self._filename_to_url.get(local_filename)

    def record_ids_for(self, local_filename: str) -> set[str]:
        """Return a copy of the record ids associated with a filename."""
        return set(self._record_ids.get(local_filename, ()))

    def urls(self) -> list[str]:
        """All mapped source URLs."""
        return list(self._url_to_filename)

    def filenames(self) -> set[str]:
        """All mapped local filenames."""
        return set(self._filename_to_url)

    def __len__(self) -> int:
        return len(self._url_to_filename)

    def __contains__(self, source_url: object) -> bool:
        return source_url in self._url_to_filename

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def check(self, source_url: str, local_filename: str) -> None:
        """Verify that recording the pair would not rewrite the mapping.

        Raises
        ------
        MappingConflictError
            If ``source_url`` is mapped to another filename, or
            ``local_filename`` is owned by another URL.
        """
        existing_filename = self._url_to_filename.get(source_url)
        if existing_filename is not None and existing_filename != local_filename:
            error = MappingConflictError(
                source_url, local_filename, existing_filename=existing_filename
            )
            logger.error("%s", error.message)
            raise error

        existing_url = self._filename_to_url.get(local_filename)
        if existing_url is not None and existing_url != source_url:
            error = MappingConflictError(
                source_url, local_filename, existing_url=existing_url
            )
            logger.error("%s", error.message)
            raise error

    def _lock_for(self, source_url: str) -> asyncio.Lock:
        lock = self._locks.get(source_url)
        if lock is None:
            lock = self._locks[source_url] = asyncio.Lock()
        return lock

    async def record(
        self,
        source_url: str,
        local_filename: str,
        record_id: str | None = None,
    ) -> None:
        """Record ``source_url -> local_filename`` and an optional record id.

        Idempotent: recording an existing pair (or an already-known record
        id) changes nothing and writes nothing.

        Parameters
        ----------
        source_url : str
            Source URL that was fetched.
        local_filename : str
            Filename the bytes were written under.
        record_id : str | None
            Source record that referenced the image.

        Raises
        ------
        MappingConflictError
            If the pair conflicts with the existing mapping. State is left
            unchanged.
        """
        async with self._lock_for(source_url):
            self.check(source_url, local_filename)

            if source_url not in self._url_to_filename:
                self._url_to_filename[source_url] = local_filename
                self._filename_to_url[local_filename] = source_url
                await self._save_url_map()
                logger.debug("Mapped %s -> %s", source_url, local_filename)

            if record_id:
                ids = self._record_ids.setdefault(local_filename, set())
                if record_id not in ids:
                    ids.add(record_id)
                    await self._save_record_map()

    async def clear(self) -> None:
        """Remove every mapping and persist the empty state."""
        self._url_to_filename.clear()
        self._filename_to_url.clear()
        self._record_ids.clear()
        await self._save_url_map()
        await self._save_record_map()
        logger.info("Cleared URL and record mappings")
