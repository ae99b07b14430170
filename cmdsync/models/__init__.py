"""Data models shared across the cache, lockfile, reconciler and installer."""

from cmdsync.models.items import CacheEntry, Item, VersionMeta
from cmdsync.models.lockfile import InstallLocation, ItemState, LockedItem, LockfileRecord
from cmdsync.models.sync import (
    ComparisonResult,
    Diff,
    DiffKind,
    InstallResult,
    RateLimitState,
    UpdateInfo,
)

__all__ = [
    "CacheEntry",
    "ComparisonResult",
    "Diff",
    "DiffKind",
    "InstallLocation",
    "InstallResult",
    "Item",
    "ItemState",
    "LockedItem",
    "LockfileRecord",
    "RateLimitState",
    "UpdateInfo",
    "VersionMeta",
]
