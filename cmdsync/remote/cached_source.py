"""Cache-first access to a remote source, with offline fallback.

A valid cache entry is served without touching the network. On a cache
miss the remote is queried and the result written back. When the remote
is unreachable, whatever the cache still holds (valid or stale) is served
instead; any other remote failure propagates unchanged.
"""

from __future__ import annotations

import logging

from cmdsync.cache import ContentCache, version_key
from cmdsync.errors import NetworkUnreachableError, SyncError
from cmdsync.models import Item, VersionMeta
from cmdsync.remote.source import RemoteSource
from cmdsync.utils.semver import latest_version

logger = logging.getLogger(__name__)


class CachedSource:
    """Wraps a ``RemoteSource`` with a ``ContentCache``."""

    def __init__(
        self,
        source: RemoteSource,
        cache: ContentCache,
        prefetch_latest: bool = True,
    ):
        self.source = source
        self.cache = cache
        self.prefetch_latest = prefetch_latest

    async def list_versions(self, force_refresh: bool = False) -> list[VersionMeta]:
        cached = self.cache.get_versions()
        if cached and not force_refresh:
            return cached

        try:
            versions = await self.source.list_versions()
        except NetworkUnreachableError:
            fallback = self.offline_versions()
            if fallback:
                logger.warning("Remote unreachable; using %d cached version(s)", len(fallback))
                return fallback
            raise

        self.cache.put_versions(versions)
        if self.prefetch_latest:
            await self._prefetch_latest(versions)
        return versions

    async def fetch_items(self, version: str, force_refresh: bool = False) -> list[Item]:
        cached = self.cache.get_items(version)
        if cached and not force_refresh:
            return cached

        try:
            items = await self.source.fetch_items(version)
        except NetworkUnreachableError:
            fallback = cached or self.cache.get_items_any_age(version)
            if fallback:
                logger.warning("Remote unreachable; using cached items for %s", version)
                return fallback
            raise

        self.cache.put_items(version, items)
        return items

    async def is_online(self) -> bool:
        probe = getattr(self.source, "is_online", None)
        if probe is None:
            return True
        return await probe()

    def offline_versions(self) -> list[VersionMeta]:
        """Versions that can be served entirely from the cache.

        Known version metadata is preferred; when the version list itself is
        gone, minimal entries are built from the cached bundle keys.
        """
        keys = self.cache.list_cached_version_keys()
        if not keys:
            return []
        known = [v for v in self.cache.get_versions_any_age() if version_key(v.name) in keys]
        if known:
            return known
        return [VersionMeta(name=key) for key in keys]

    async def _prefetch_latest(self, versions: list[VersionMeta]) -> None:
        latest = latest_version(versions, key=lambda v: v.name)
        if latest is None or self.cache.get_items(latest.name):
            return
        try:
            await self.fetch_items(latest.name, force_refresh=True)
        except SyncError as exc:
            logger.debug("Prefetch of %s failed: %s", latest.name, exc)
