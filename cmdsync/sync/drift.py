"""Drift detection — find installed files the user has edited by hand.

Drift happens when an installed file's content no longer hashes to what
the lockfile recorded at install time. Drifted items are flagged
``userModified`` so later updates skip them instead of overwriting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cmdsync.lockfile import VersionLockfile
from cmdsync.models import ItemState
from cmdsync.sync.filenames import filename_for_state, install_filename
from cmdsync.sync.installer import Installer
from cmdsync.utils.hashing import content_hash

logger = logging.getLogger(__name__)


@dataclass
class DriftReport:
    """Drift found in one installation target."""

    root: Path
    version: str = ""
    drifted: list[str] = field(default_factory=list)  # Content differs from lockfile
    missing: list[str] = field(default_factory=list)  # Recorded but not on disk
    newly_flagged: list[str] = field(default_factory=list)
    cleared: list[str] = field(default_factory=list)  # Back to the recorded content

    @property
    def has_drift(self) -> bool:
        return bool(self.drifted or self.missing)

    def summary(self) -> str:
        if not self.has_drift:
            return f"{self.root} ({self.version}): no drift detected"
        return (
            f"{self.root} ({self.version}): {len(self.drifted)} modified, "
            f"{len(self.missing)} missing"
        )


class DriftDetector:
    """Compares installed files with their lockfile hashes."""

    def __init__(self, lockfile: VersionLockfile, installer: Installer):
        self.lockfile = lockfile
        self.installer = installer

    def scan(self, root: str | Path, mark: bool = True) -> DriftReport | None:
        """Scan one target. Returns None when nothing is installed there.

        With *mark*, newly drifted items get ``userModified`` set in the
        lockfile, and flagged items whose file matches the recorded hash
        again get it cleared. Missing files are reported but never flagged.
        """
        root = Path(root)
        record = self.lockfile.read(root)
        if record is None:
            return None

        report = DriftReport(root=root, version=record.version)
        install_dir = self.installer.install_dir(root)
        store = self.installer.store

        for locked in record.items:
            file_name = install_filename(locked.path, locked.identity)
            data = None
            for state in (locked.state, *ItemState):
                try:
                    data = store.read(install_dir / filename_for_state(file_name, state))
                    break
                except FileNotFoundError:
                    continue

            if data is None:
                report.missing.append(locked.identity)
                continue
            if content_hash(data) == locked.content_hash:
                if mark and locked.user_modified:
                    self.lockfile.mark_modified(root, locked.identity, False)
                    report.cleared.append(locked.identity)
                continue

            report.drifted.append(locked.identity)
            if mark and not locked.user_modified:
                self.lockfile.mark_modified(root, locked.identity)
                report.newly_flagged.append(locked.identity)

        if report.has_drift:
            logger.info(report.summary())
        return report
