"""Update checker — detect newer upstream versions for installed targets.

Compares the version recorded in a target's lockfile with the latest
semantic-version tag upstream and, when they differ, classifies the
items of the new version against the lockfile. Update checks are
advisory: remote failures are logged and reported as "no information".
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from cmdsync.errors import SyncError
from cmdsync.lockfile import VersionLockfile
from cmdsync.models import UpdateInfo, VersionMeta
from cmdsync.remote import CachedSource
from cmdsync.utils.hashing import content_hash
from cmdsync.utils.semver import compare_semver, latest_version, parse_semver

logger = logging.getLogger(__name__)


def is_newer(candidate: str, installed: str) -> bool:
    """True when *candidate* should replace *installed*.

    An installed version that is not a semantic version is replaced by any
    different comparable version.
    """
    if candidate == installed:
        return False
    new, old = parse_semver(candidate), parse_semver(installed)
    if new is None:
        return False
    if old is None:
        return True
    return compare_semver(new, old) > 0


def select_latest(versions: list[VersionMeta]) -> VersionMeta | None:
    return latest_version(versions, key=lambda v: v.name)


class UpdateChecker:
    """Checks installation targets against the upstream source."""

    def __init__(self, source: CachedSource, lockfile: VersionLockfile):
        self.source = source
        self.lockfile = lockfile

    async def check(self, root: str | Path) -> UpdateInfo | None:
        """Check one target. Returns None if nothing is installed there or
        the remote could not be consulted."""
        record = self.lockfile.read(root)
        if record is None:
            return None

        try:
            latest = select_latest(await self.source.list_versions())
        except SyncError as exc:
            logger.warning("Update check failed for %s: %s", root, exc)
            return None
        if latest is None:
            return None

        if not is_newer(latest.name, record.version):
            return UpdateInfo(current_version=record.version, latest_version=latest.name)

        try:
            items = await self.source.fetch_items(latest.name)
        except SyncError as exc:
            logger.warning("Could not fetch %s for update check: %s", latest.name, exc)
            return None

        comparison = self.lockfile.diff_against_remote(
            root, [(item.identity, content_hash(item.content)) for item in items]
        )
        return UpdateInfo(
            current_version=record.version,
            latest_version=latest.name,
            has_update=True,
            changed=comparison.changed,
            added=comparison.added,
            removed=comparison.removed,
        )

    async def check_all(self, roots: Iterable[str | Path]) -> dict[Path, UpdateInfo]:
        """Check each target in turn; targets with nothing installed are left out."""
        results: dict[Path, UpdateInfo] = {}
        for root in roots:
            info = await self.check(root)
            if info is not None:
                results[Path(root)] = info
        return results
