"""Per-target record of the installed version and item states."""

from cmdsync.lockfile.lockfile_store import ResolvedInstall, VersionLockfile

__all__ = ["ResolvedInstall", "VersionLockfile"]
