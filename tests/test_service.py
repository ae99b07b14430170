"""Tests for the sync service and its command/notification boundary."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from cmdsync.cache import ContentCache
from cmdsync.config import SyncConfig
from cmdsync.errors import ConfigurationError, NetworkUnreachableError, NotInstalledError, ValidationFailedError
from cmdsync.lockfile import VersionLockfile
from cmdsync.models import InstallLocation, Item, LockfileRecord, VersionMeta
from cmdsync.remote import CachedSource
from cmdsync.sync import commands as cmd
from cmdsync.sync.installer import Installer
from cmdsync.sync.service import SyncService, failure_kind


class FakeSource:
    def __init__(self, versions=(), items=None):
        self.versions = list(versions)
        self.items = items or {}
        self.online = True
        self.error: Exception | None = None

    async def list_versions(self):
        if self.error:
            raise self.error
        return [VersionMeta(name=v) for v in self.versions]

    async def fetch_items(self, version):
        if self.error:
            raise self.error
        return list(self.items.get(version, []))

    async def is_online(self):
        return self.online


def _item(identity, content, ext=".md"):
    return Item(identity, f".claude/commands/{identity}{ext}", content)


def _service(tmpdir, source, location=InstallLocation.WORKSPACE, roots=None):
    base = Path(tmpdir)
    config = SyncConfig(
        install_location=location,
        cache_dir=base / "cache",
        user_root=base / "home",
    )
    cache = ContentCache(config.cache_dir)
    lockfile = VersionLockfile()
    installer = Installer(lockfile, user_root=config.user_root)
    if roots is None:
        roots = [base / "ws"]
    return SyncService(config, CachedSource(source, cache), cache, lockfile, installer, roots)


def _install_dir(root):
    return Path(root) / ".claude" / "commands" / "humanlayer"


V1 = [_item("a", "A1"), _item("b", "B1")]


# --- Install Tests ---


def test_install_defaults_to_semver_latest():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(["v1.9.0", "v1.10.0", "nightly"], items={"v1.10.0": V1})
        service = _service(tmpdir, source)
        report = asyncio.run(service.install())

        ws = Path(tmpdir) / "ws"
        assert report.version == "v1.10.0"
        assert report.success
        assert service.lockfile.read(ws).version == "v1.10.0"
        assert service.lockfile.read(ws).profile == "full"
        assert service.cache.get_items("v1.10.0")


def test_install_into_every_workspace_in_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        roots = [Path(tmpdir) / "one", Path(tmpdir) / "two"]
        service = _service(tmpdir, FakeSource(items={"v1.0.0": V1}), roots=roots)
        report = asyncio.run(service.install("v1.0.0", "minimal"))

        assert list(report.results) == roots
        for root in roots:
            assert service.lockfile.read(root).profile == "minimal"


def test_user_install_ignores_workspaces():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(items={"v1.0.0": V1}), InstallLocation.USER, roots=[])
        report = asyncio.run(service.install("v1.0.0"))

        home = Path(tmpdir) / "home"
        assert list(report.results) == [home]
        assert service.lockfile.read(home).location == InstallLocation.USER


def test_workspace_install_without_workspace_fails_before_fetching():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource()
        source.error = AssertionError("should not be called")
        service = _service(tmpdir, source, roots=[])
        with pytest.raises(ConfigurationError):
            asyncio.run(service.install("v1.0.0"))


def test_validation_errors_abort_unless_forced():
    with tempfile.TemporaryDirectory() as tmpdir:
        items = {"v1.0.0": [_item("bad", "prompt: x\ntemperature: 9\n", ".yaml")]}
        service = _service(tmpdir, FakeSource(items=items))
        with pytest.raises(ValidationFailedError) as info:
            asyncio.run(service.install("v1.0.0"))
        assert len(info.value.result.errors) == 1
        assert service.lockfile.read(Path(tmpdir) / "ws") is None

        report = asyncio.run(service.install("v1.0.0", force=True))
        assert report.success


# --- Update Tests ---


def test_update_skips_user_edits_and_applies_the_rest():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(
            items={
                "v1.0.0": V1,
                "v1.1.0": [_item("a", "A2"), _item("b", "B2"), _item("c", "C1")],
            }
        )
        service = _service(tmpdir, source)
        ws = Path(tmpdir) / "ws"
        asyncio.run(service.install("v1.0.0", "minimal"))
        (_install_dir(ws) / "b.md").write_text("my version of b")

        source.versions = ["v1.0.0", "v1.1.0"]
        outcome = asyncio.run(service.update())[0]

        assert outcome.current_version == "v1.0.0"
        assert outcome.latest_version == "v1.1.0"
        assert sorted(outcome.applied) == ["a", "c"]
        assert outcome.skipped == ["b"]
        assert (_install_dir(ws) / "a.md").read_text() == "A2"
        assert (_install_dir(ws) / "b.md").read_text() == "my version of b"

        record = service.lockfile.read(ws)
        assert record.version == "v1.1.0"
        assert record.profile == "minimal"
        assert record.find("b").user_modified


def test_update_reports_write_failures_as_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(
            items={
                "v1.0.0": V1,
                "v1.1.0": [_item("a", "A2"), _item("b", "B1"), _item("c", "C1")],
            }
        )
        service = _service(tmpdir, source)
        ws = Path(tmpdir) / "ws"
        asyncio.run(service.install("v1.0.0"))
        # A directory where c.md should go makes the write fail
        (_install_dir(ws) / "c.md").mkdir()

        source.versions = ["v1.0.0", "v1.1.0"]
        outcome = asyncio.run(service.update())[0]

        assert outcome.applied == ["a"]
        assert outcome.skipped == ["c"]
        assert not outcome.result.success
        assert outcome.result.installed == ["a", "b"]
        assert "1 applied" in outcome.summary()


def test_update_when_current_is_noop():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(["v1.0.0"], items={"v1.0.0": V1})
        service = _service(tmpdir, source)
        asyncio.run(service.install("v1.0.0"))
        outcome = asyncio.run(service.update())[0]
        assert outcome.up_to_date
        assert outcome.result is None


def test_update_without_install_is_not_applicable():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"]))
        with pytest.raises(NotInstalledError):
            asyncio.run(service.update())

        notes = asyncio.run(service.handle(cmd.Update()))
        assert notes[0] == cmd.SetLoading(True)
        assert notes[1].kind == cmd.FailureKind.NOT_APPLICABLE
        assert notes[-1] == cmd.SetLoading(False)


# --- Command Dispatch Tests ---


def test_handle_install_reports_success_and_state():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"], items={"v1.0.0": V1}))
        notes = asyncio.run(service.handle(cmd.Install("v1.0.0", "full")))

        assert notes[0] == cmd.SetLoading(True)
        assert notes[1] == cmd.ShowSuccess("Installed 2 commands (v1.0.0)")
        state = notes[2].state
        assert state.selected_version == "v1.0.0"
        assert [i.identity for i in state.items] == ["a", "b"]
        assert state.install_location == InstallLocation.WORKSPACE
        assert state.is_loading is False


def test_handle_network_failure_is_retryable():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource()
        source.error = NetworkUnreachableError("Network error: Unable to reach GitHub")
        service = _service(tmpdir, source)

        notes = asyncio.run(service.handle(cmd.Install("v1.0.0")))
        assert notes[1] == cmd.ShowError(
            "Network error: Unable to reach GitHub", cmd.FailureKind.RETRYABLE
        )


def test_handle_toggle_and_preview():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"], items={"v1.0.0": V1}))
        asyncio.run(service.install("v1.0.0"))
        ws = Path(tmpdir) / "ws"

        notes = asyncio.run(service.handle(cmd.Toggle("a", False)))
        assert (_install_dir(ws) / "a.md.disabled").exists()
        assert service.lockfile.read(ws).find("a").disabled
        items = {i.identity: i for i in notes[-1].state.items}
        assert items["a"].enabled is False

        notes = asyncio.run(service.handle(cmd.Preview("a")))
        assert notes == [cmd.ShowContent("a", "A1")]

        notes = asyncio.run(service.handle(cmd.Toggle("zzz", True)))
        assert notes[0].kind == cmd.FailureKind.FAILED
        assert "Command not found: zzz" in notes[0].message


def test_handle_fetch_items_marks_installed_and_updates():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(
            ["v1.0.0", "v1.1.0"],
            items={"v1.0.0": V1, "v1.1.0": [_item("a", "A2"), _item("b", "B1"), _item("c", "C")]},
        )
        service = _service(tmpdir, source)
        asyncio.run(service.install("v1.0.0"))

        notes = asyncio.run(service.handle(cmd.FetchItems("v1.1.0")))
        state = notes[-1].state
        items = {i.identity: i for i in state.items}
        assert state.selected_version == "v1.1.0"
        assert items["a"].installed and items["a"].has_update
        assert items["b"].installed and not items["b"].has_update
        assert not items["c"].installed


def test_handle_uninstall_then_nothing_to_uninstall():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"], items={"v1.0.0": V1}))
        asyncio.run(service.install("v1.0.0"))

        notes = asyncio.run(service.handle(cmd.Uninstall()))
        assert notes[0] == cmd.ShowSuccess("Commands removed successfully")
        assert notes[1].state.items == []

        notes = asyncio.run(service.handle(cmd.Uninstall()))
        assert notes == [cmd.ShowError("No commands installed", cmd.FailureKind.NOT_APPLICABLE)]


def test_handle_cache_commands():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"], items={"v1.0.0": V1}))
        asyncio.run(service.fetch_items("v1.0.0"))

        assert asyncio.run(service.handle(cmd.PurgeCache())) == [
            cmd.ShowSuccess("Purged 0 stale cache entries")
        ]
        assert asyncio.run(service.handle(cmd.ClearCache())) == [cmd.ShowSuccess("Cache cleared")]
        assert service.cache.list_cached_version_keys() == []


# --- Refresh Tests ---


def test_refresh_offline_lists_cached_versions_only():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = FakeSource(["v1.0.0", "v1.1.0"], items={"v1.0.0": V1})
        service = _service(tmpdir, source)
        asyncio.run(service.fetch_items("v1.0.0"))
        source.online = False

        state = asyncio.run(service.refresh())
        assert state.is_offline
        assert state.versions == ["v1.0.0"]
        assert state.install_location is None
        assert state.selected_version == "v1.0.0"


def test_refresh_prefers_workspace_install_over_user():
    with tempfile.TemporaryDirectory() as tmpdir:
        service = _service(tmpdir, FakeSource(["v1.0.0"]))
        ws = Path(tmpdir) / "ws"
        home = Path(tmpdir) / "home"
        service.lockfile.write(home, LockfileRecord("v0.5.0", "full", location=InstallLocation.USER))
        service.lockfile.write(ws, LockfileRecord("v1.0.0", "minimal"))

        state = asyncio.run(service.refresh())
        assert state.selected_version == "v1.0.0"
        assert state.profile == "minimal"
        assert state.install_location == InstallLocation.WORKSPACE

        service.lockfile.delete(ws)
        state = asyncio.run(service.refresh())
        assert state.selected_version == "v0.5.0"
        assert state.install_location == InstallLocation.USER


def test_failure_kind_mapping():
    from cmdsync.errors import RemoteProtocolError

    assert failure_kind(RemoteProtocolError("limit", 429)) == cmd.FailureKind.RETRYABLE
    assert failure_kind(RemoteProtocolError("missing", 404)) == cmd.FailureKind.FAILED
    assert failure_kind(ConfigurationError("x")) == cmd.FailureKind.FAILED
