"""Tests for update checking and drift detection."""

import asyncio
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from cmdsync.cache import ContentCache
from cmdsync.errors import NetworkUnreachableError
from cmdsync.lockfile import VersionLockfile
from cmdsync.models import Item, VersionMeta
from cmdsync.remote import CachedSource
from cmdsync.sync.drift import DriftDetector
from cmdsync.sync.installer import Installer
from cmdsync.sync.update_checker import UpdateChecker, is_newer


class FakeSource:
    def __init__(self, versions=(), items=None):
        self.versions = list(versions)
        self.items = items or {}
        self.error: Exception | None = None

    async def list_versions(self):
        if self.error:
            raise self.error
        return [VersionMeta(name=v) for v in self.versions]

    async def fetch_items(self, version):
        if self.error:
            raise self.error
        return list(self.items.get(version, []))


def _item(identity, content):
    return Item(identity, f".claude/commands/{identity}.md", content)


def _checker(tmpdir, remote):
    cache = ContentCache(
        Path(tmpdir) / "cache", clock=lambda: datetime(2024, 12, 1, tzinfo=timezone.utc)
    )
    return UpdateChecker(CachedSource(remote, cache, prefetch_latest=False), VersionLockfile())


def _install_dir(root):
    return Path(root) / ".claude" / "commands" / "humanlayer"


# --- Version Ordering Tests ---


def test_is_newer():
    assert is_newer("v1.10.0", "v1.9.0")
    assert not is_newer("v1.9.0", "v1.10.0")
    assert not is_newer("v1.0.0", "v1.0.0")
    assert is_newer("v1.0.0", "main")
    assert not is_newer("nightly", "v1.0.0")


# --- Update Check Tests ---


def test_check_without_install_is_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        checker = _checker(tmpdir, FakeSource(["v1.0.0"]))
        assert asyncio.run(checker.check(Path(tmpdir) / "ws")) is None


def test_check_up_to_date():
    with tempfile.TemporaryDirectory() as tmpdir:
        ws = Path(tmpdir) / "ws"
        Installer(VersionLockfile()).install(ws, [_item("a", "A")], "v1.1.0", "full")

        checker = _checker(tmpdir, FakeSource(["v1.0.0", "v1.1.0"]))
        info = asyncio.run(checker.check(ws))
        assert info.has_update is False
        assert info.summary() == "Up to date (v1.1.0)"


def test_check_reports_classified_changes():
    with tempfile.TemporaryDirectory() as tmpdir:
        ws = Path(tmpdir) / "ws"
        Installer(VersionLockfile()).install(
            ws, [_item("a", "A"), _item("b", "B"), _item("old", "O")], "v1.0.0", "full"
        )
        remote = FakeSource(
            ["v1.0.0", "v1.1.0"],
            items={"v1.1.0": [_item("a", "A2"), _item("b", "B"), _item("c", "C")]},
        )

        info = asyncio.run(_checker(tmpdir, remote).check(ws))
        assert info.has_update
        assert (info.current_version, info.latest_version) == ("v1.0.0", "v1.1.0")
        assert info.changed == ["a"]
        assert info.added == ["c"]
        assert info.removed == ["old"]
        assert info.total_changes == 3


def test_check_swallows_remote_failures():
    with tempfile.TemporaryDirectory() as tmpdir:
        ws = Path(tmpdir) / "ws"
        Installer(VersionLockfile()).install(ws, [_item("a", "A")], "v1.0.0", "full")
        remote = FakeSource()
        remote.error = NetworkUnreachableError("offline")

        assert asyncio.run(_checker(tmpdir, remote).check(ws)) is None


def test_check_all_skips_targets_without_install():
    with tempfile.TemporaryDirectory() as tmpdir:
        ws1, ws2 = Path(tmpdir) / "ws1", Path(tmpdir) / "ws2"
        Installer(VersionLockfile()).install(ws1, [_item("a", "A")], "v1.0.0", "full")

        results = asyncio.run(_checker(tmpdir, FakeSource(["v1.0.0"])).check_all([ws1, ws2]))
        assert list(results) == [ws1]


# --- Drift Tests ---


def test_drift_scan_flags_edited_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        installer = Installer(lockfile)
        installer.install(tmpdir, [_item("a", "A"), _item("b", "B")], "v1.0.0", "full")
        (_install_dir(tmpdir) / "a.md").write_text("edited")

        report = DriftDetector(lockfile, installer).scan(tmpdir)
        assert report.drifted == ["a"]
        assert report.newly_flagged == ["a"]
        assert report.has_drift
        assert lockfile.modified_identities(tmpdir) == ["a"]

        # A second scan reports the drift again without re-flagging
        again = DriftDetector(lockfile, installer).scan(tmpdir)
        assert again.drifted == ["a"]
        assert again.newly_flagged == []


def test_drift_scan_clears_flag_when_file_is_reverted():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        installer = Installer(lockfile)
        installer.install(tmpdir, [_item("a", "A"), _item("b", "B")], "v1.0.0", "full")
        detector = DriftDetector(lockfile, installer)
        (_install_dir(tmpdir) / "a.md").write_text("edited")
        detector.scan(tmpdir)
        assert lockfile.modified_identities(tmpdir) == ["a"]

        (_install_dir(tmpdir) / "a.md").write_text("A")
        report = detector.scan(tmpdir)
        assert not report.has_drift
        assert report.cleared == ["a"]
        assert lockfile.modified_identities(tmpdir) == []


def test_drift_scan_report_only_keeps_flags():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        installer = Installer(lockfile)
        installer.install(tmpdir, [_item("a", "A")], "v1.0.0", "full")
        lockfile.mark_modified(tmpdir, "a")

        report = DriftDetector(lockfile, installer).scan(tmpdir, mark=False)
        assert report.cleared == []
        assert lockfile.modified_identities(tmpdir) == ["a"]


def test_drift_scan_reports_missing_without_flagging():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        installer = Installer(lockfile)
        installer.install(tmpdir, [_item("a", "A"), _item("b", "B")], "v1.0.0", "full")
        (_install_dir(tmpdir) / "b.md").unlink()

        report = DriftDetector(lockfile, installer).scan(tmpdir)
        assert report.missing == ["b"]
        assert report.drifted == []
        assert lockfile.modified_identities(tmpdir) == []


def test_drift_scan_follows_disabled_files_and_report_only_mode():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        installer = Installer(lockfile)
        installer.install(tmpdir, [_item("a", "A")], "v1.0.0", "full")
        installer.set_enabled(tmpdir, "a", False)

        detector = DriftDetector(lockfile, installer)
        assert not detector.scan(tmpdir).has_drift

        (_install_dir(tmpdir) / "a.md.disabled").write_text("edited")
        report = detector.scan(tmpdir, mark=False)
        assert report.drifted == ["a"]
        assert lockfile.modified_identities(tmpdir) == []


def test_drift_scan_without_install_is_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        lockfile = VersionLockfile()
        assert DriftDetector(lockfile, Installer(lockfile)).scan(tmpdir) is None
