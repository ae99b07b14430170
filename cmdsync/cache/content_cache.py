"""TTL-gated local copies of remote versions and items.

Layout under the cache directory::

    tags.json              {"tags": [...], "cachedAt": "..."}
    commands/<key>.json    {"commands": [...], "tag": "...", "cachedAt": "..."}
    metadata.json          {"version": "1.0.0", "lastCleanup": "..."}

Reads fail open: a missing, unreadable, corrupt or expired entry is
reported as an empty result, because a miss is always recoverable by
refetching. Writes are best-effort and never raise into the caller.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from cmdsync.models import CacheEntry, Item, VersionMeta
from cmdsync.utils.file_store import FileStore, LocalFileStore
from cmdsync.utils.timeutil import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = "1.0.0"
DEFAULT_TTL = timedelta(hours=24)
PURGE_MULTIPLIER = 7

TAGS_CACHE_FILE = "tags.json"
COMMANDS_CACHE_DIR = "commands"
METADATA_FILE = "metadata.json"

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

# Anything a missing, truncated or hand-edited cache file can raise while loading
_READ_ERRORS = (OSError, ValueError, KeyError, TypeError, AttributeError)


def version_key(version: str) -> str:
    """Return a filesystem-safe cache key for *version*.

    Two versions that differ only in unsafe characters share a key; that
    collision is accepted.
    """
    return _UNSAFE_KEY_CHARS.sub("_", version)


@dataclass
class CacheSize:
    file_count: int = 0
    byte_size: int = 0


class ContentCache:
    """Persists upstream version lists and per-version item bundles."""

    def __init__(
        self,
        cache_dir: str | Path,
        store: FileStore | None = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache_dir = Path(cache_dir)
        self.store = store or LocalFileStore()
        self.ttl = ttl
        self.purge_after = ttl * PURGE_MULTIPLIER
        self.clock = clock

        self.tags_path = self.cache_dir / TAGS_CACHE_FILE
        self.commands_dir = self.cache_dir / COMMANDS_CACHE_DIR
        self.metadata_path = self.cache_dir / METADATA_FILE

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def get_versions(self) -> list[VersionMeta]:
        """Return the cached version list, or [] if missing or expired."""
        entry = self._read_versions_entry()
        if entry is None or not entry.is_valid(self.clock(), self.ttl):
            return []
        return entry.payload

    def get_versions_any_age(self) -> list[VersionMeta]:
        """Return the cached version list regardless of TTL (offline use)."""
        entry = self._read_versions_entry()
        return entry.payload if entry else []

    def put_versions(self, versions: list[VersionMeta]) -> None:
        data = {
            "tags": [v.to_dict() for v in versions],
            "cachedAt": format_timestamp(self.clock()),
        }
        self._write_json(self.tags_path, data)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_items(self, version: str) -> list[Item]:
        """Return the cached items of *version*, or [] if missing or expired."""
        entry = self._read_items_entry(self._items_path(version))
        if entry is None or not entry.is_valid(self.clock(), self.ttl):
            return []
        return entry.payload

    def get_items_any_age(self, version: str) -> list[Item]:
        """Return the cached items of *version* regardless of TTL."""
        entry = self._read_items_entry(self._items_path(version))
        return entry.payload if entry else []

    def put_items(self, version: str, items: list[Item]) -> None:
        data = {
            "commands": [item.to_dict() for item in items],
            "tag": version,
            "cachedAt": format_timestamp(self.clock()),
        }
        self._write_json(self._items_path(version), data)

    def list_cached_version_keys(self) -> list[str]:
        """Return the keys of every cached item bundle, expired or not."""
        try:
            entries = self.store.list(self.commands_dir)
        except OSError:
            return []
        return [
            name[: -len(".json")]
            for name, is_file in entries
            if is_file and name.endswith(".json")
        ]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Delete the version list and every item bundle."""
        self._safe_delete(self.tags_path)

        try:
            entries = self.store.list(self.commands_dir)
        except OSError:
            entries = []
        for name, is_file in entries:
            if is_file:
                self._safe_delete(self.commands_dir / name)

        self._update_metadata()
        logger.info("Cleared content cache at %s", self.cache_dir)

    def purge_stale(self) -> list[str]:
        """Delete item bundles older than 7x TTL, and any that are unreadable.

        Returns the keys that were deleted.
        """
        deleted: list[str] = []
        try:
            entries = self.store.list(self.commands_dir)
        except OSError:
            entries = []

        now = self.clock()
        for name, is_file in entries:
            if not is_file or not name.endswith(".json"):
                continue
            path = self.commands_dir / name
            try:
                entry = self._load_items_entry(path)
            except _READ_ERRORS as exc:
                logger.debug("Deleting unreadable cache bundle %s: %s", name, exc)
                self._safe_delete(path)
                deleted.append(name[: -len(".json")])
                continue
            if entry.age(now) > self.purge_after:
                self._safe_delete(path)
                deleted.append(name[: -len(".json")])

        self._update_metadata()
        if deleted:
            logger.info("Purged %d stale cache bundle(s)", len(deleted))
        return deleted

    def size_report(self) -> CacheSize:
        """Count files and bytes under the whole cache directory."""
        size = CacheSize()
        self._count_dir(self.cache_dir, size)
        return size

    def read_metadata(self) -> dict:
        try:
            data = json.loads(self.store.read_text(self.metadata_path))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _items_path(self, version: str) -> Path:
        return self.commands_dir / f"{version_key(version)}.json"

    def _read_versions_entry(self) -> CacheEntry[list[VersionMeta]] | None:
        try:
            data = json.loads(self.store.read_text(self.tags_path))
            return CacheEntry(
                payload=[VersionMeta.from_dict(t) for t in data["tags"]],
                cached_at=parse_timestamp(data["cachedAt"]),
            )
        except _READ_ERRORS as exc:
            logger.debug("Version cache unavailable: %s", exc)
            return None

    def _read_items_entry(self, path: Path) -> CacheEntry[list[Item]] | None:
        try:
            return self._load_items_entry(path)
        except _READ_ERRORS as exc:
            logger.debug("Item cache %s unavailable: %s", path.name, exc)
            return None

    def _load_items_entry(self, path: Path) -> CacheEntry[list[Item]]:
        data = json.loads(self.store.read_text(path))
        return CacheEntry(
            payload=[Item.from_dict(c) for c in data["commands"]],
            cached_at=parse_timestamp(data["cachedAt"]),
        )

    def _write_json(self, path: Path, data: dict) -> None:
        try:
            self.store.write(path, json.dumps(data, indent=2))
        except OSError as exc:
            logger.warning("Could not write cache file %s: %s", path, exc)

    def _safe_delete(self, path: Path) -> None:
        try:
            self.store.delete(path)
        except OSError as exc:
            logger.debug("Could not delete cache file %s: %s", path, exc)

    def _update_metadata(self) -> None:
        self._write_json(
            self.metadata_path,
            {"version": CACHE_FORMAT_VERSION, "lastCleanup": format_timestamp(self.clock())},
        )

    def _count_dir(self, directory: Path, size: CacheSize) -> None:
        try:
            entries = self.store.list(directory)
        except OSError:
            return
        for name, is_file in entries:
            path = directory / name
            if is_file:
                size.file_count += 1
                try:
                    size.byte_size += self.store.stat(path)
                except OSError:
                    pass
            else:
                self._count_dir(path, size)
