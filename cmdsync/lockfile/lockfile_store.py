"""Version lockfile — the durable record of one installation target.

Exactly one lockfile exists per target root (a workspace root, or the
user's home for user-scope installs). It is created on the first install,
overwritten wholesale on every install or update, patched per item for
``userModified``/``disabled`` flags, and deleted on uninstall.

There is no locking around read-modify-write; ``patch_item`` assumes a
single writer per target.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Iterable

from cmdsync.models import ComparisonResult, InstallLocation, LockedItem, LockfileRecord
from cmdsync.sync.differ import compare_hashes
from cmdsync.utils.file_store import FileStore, LocalFileStore

logger = logging.getLogger(__name__)

DEFAULT_COMMANDS_PATH = ".claude/commands"
DEFAULT_NAMESPACE = "humanlayer"

_PATCHABLE_FIELDS = {f.name for f in fields(LockedItem)} - {"identity"}


@dataclass
class ResolvedInstall:
    """A lockfile together with the target it was read from."""

    record: LockfileRecord
    root: Path
    location: InstallLocation


class VersionLockfile:
    """Reads and writes the lockfile of installation targets."""

    def __init__(
        self,
        store: FileStore | None = None,
        commands_path: str = DEFAULT_COMMANDS_PATH,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        self.store = store or LocalFileStore()
        self.commands_path = commands_path
        self.namespace = namespace

    def path_for(self, root: str | Path) -> Path:
        return Path(root) / self.commands_path / f"{self.namespace}.lock.json"

    # ------------------------------------------------------------------
    # Whole-record operations
    # ------------------------------------------------------------------

    def read(self, root: str | Path) -> LockfileRecord | None:
        """Return the target's lockfile, or None if absent or unparseable."""
        path = self.path_for(root)
        try:
            data = json.loads(self.store.read_text(path))
            return LockfileRecord.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable lockfile %s: %s", path, exc)
            return None

    def write(self, root: str | Path, record: LockfileRecord) -> None:
        """Overwrite the target's lockfile (temp file, then rename)."""
        path = self.path_for(root)
        self.store.write(path, json.dumps(record.to_dict(), indent=2) + "\n")
        logger.debug("Wrote lockfile %s (%s, %d items)", path, record.version, len(record.items))

    def delete(self, root: str | Path) -> None:
        path = self.path_for(root)
        try:
            self.store.delete(path)
        except OSError as exc:
            logger.debug("Could not delete lockfile %s: %s", path, exc)

    # ------------------------------------------------------------------
    # Per-item updates
    # ------------------------------------------------------------------

    def patch_item(self, root: str | Path, identity: str, **updates) -> bool:
        """Merge *updates* into one item record and write the lockfile back.

        No-op (returns False) when there is no lockfile or no such item.

        Raises:
            ValueError: If *updates* names a field that cannot be patched.
        """
        unknown = set(updates) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch lockfile fields: {', '.join(sorted(unknown))}")

        record = self.read(root)
        if record is None:
            return False

        item = record.find(identity)
        if item is None:
            return False

        for name, value in updates.items():
            setattr(item, name, value)
        self.write(root, record)
        return True

    def mark_modified(self, root: str | Path, identity: str, modified: bool = True) -> bool:
        return self.patch_item(root, identity, user_modified=modified)

    def mark_disabled(self, root: str | Path, identity: str, disabled: bool) -> bool:
        return self.patch_item(root, identity, disabled=disabled)

    def modified_identities(self, root: str | Path) -> list[str]:
        record = self.read(root)
        if record is None:
            return []
        return [item.identity for item in record.items if item.user_modified]

    # ------------------------------------------------------------------
    # Comparison and lookup
    # ------------------------------------------------------------------

    def diff_against_remote(
        self, root: str | Path, remote_hashes: Iterable[tuple[str, str]]
    ) -> ComparisonResult:
        """Compare the lockfile with ``(identity, hash)`` pairs from a remote.

        With no lockfile every remote identity is reported as added.
        """
        remote = dict(remote_hashes)
        record = self.read(root)
        if record is None:
            return ComparisonResult(added=list(remote))
        local = {item.identity: item.content_hash for item in record.items}
        return compare_hashes(local, remote)

    def resolve_installed(
        self, workspace_root: str | Path | None, user_root: str | Path
    ) -> ResolvedInstall | None:
        """Find the install that applies to a workspace.

        A workspace lockfile wins over the user-scope one when both exist;
        the two are never merged.
        """
        if workspace_root is not None:
            record = self.read(workspace_root)
            if record is not None:
                return ResolvedInstall(record, Path(workspace_root), record.location)

        record = self.read(user_root)
        if record is not None:
            return ResolvedInstall(record, Path(user_root), InstallLocation.USER)
        return None
