"""Sync service — the fetch, validate, install and record cycle.

The service wires the cached remote source, the installer, the lockfile
and the validator together for one set of workspace roots. Operations
either return their results directly (for the CLI) or, through
``handle``, turn a ``Command`` into the ``Notification`` list a front end
renders. Installation targets are processed strictly one after another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable

import httpx

from cmdsync.cache import ContentCache
from cmdsync.config import SyncConfig
from cmdsync.errors import (
    ConfigurationError,
    ItemNotFoundError,
    NetworkUnreachableError,
    NotInstalledError,
    RemoteProtocolError,
    SyncError,
    ValidationFailedError,
)
from cmdsync.lockfile import ResolvedInstall, VersionLockfile
from cmdsync.models import InstallLocation, InstallResult, Item, UpdateInfo, VersionMeta
from cmdsync.remote import CachedSource, GitHubSource
from cmdsync.sync import commands as cmd
from cmdsync.sync.differ import build_diffs
from cmdsync.sync.drift import DriftDetector, DriftReport
from cmdsync.sync.installer import Installer
from cmdsync.sync.update_checker import UpdateChecker, is_newer, select_latest
from cmdsync.utils.hashing import content_hash
from cmdsync.validator import ValidationResult, validate_items

logger = logging.getLogger(__name__)


@dataclass
class InstallReport:
    """Outcome of installing one version into every target."""

    version: str
    item_count: int
    validation: ValidationResult
    results: dict[Path, InstallResult] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results.values())

    @property
    def errors(self) -> list[str]:
        return [e for r in self.results.values() for e in r.errors]


@dataclass
class UpdateOutcome:
    """Outcome of updating one target."""

    root: Path
    current_version: str = ""
    latest_version: str = ""
    up_to_date: bool = False
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    result: InstallResult | None = None

    def summary(self) -> str:
        if self.up_to_date:
            return f"{self.root}: already up to date ({self.current_version})"
        text = (
            f"{self.root}: updated {self.current_version} -> {self.latest_version} "
            f"({len(self.applied)} applied"
        )
        if self.skipped:
            text += f", {len(self.skipped)} skipped: {', '.join(self.skipped)}"
        return text + ")"


def failure_kind(exc: Exception) -> cmd.FailureKind:
    """Classify an error for presentation."""
    if isinstance(exc, NetworkUnreachableError):
        return cmd.FailureKind.RETRYABLE
    if isinstance(exc, RemoteProtocolError) and exc.status_code == 429:
        return cmd.FailureKind.RETRYABLE
    if isinstance(exc, NotInstalledError):
        return cmd.FailureKind.NOT_APPLICABLE
    return cmd.FailureKind.FAILED


class SyncService:
    """Orchestrates sync operations for a set of workspace roots."""

    def __init__(
        self,
        config: SyncConfig,
        source: CachedSource,
        cache: ContentCache,
        lockfile: VersionLockfile,
        installer: Installer,
        workspace_roots: Iterable[str | Path] = (),
        validator: Callable[[list[Item]], ValidationResult] = validate_items,
    ):
        self.config = config
        self.source = source
        self.cache = cache
        self.lockfile = lockfile
        self.installer = installer
        self.workspace_roots = [Path(r) for r in workspace_roots]
        self.validator = validator
        self.checker = UpdateChecker(source, lockfile)
        self.drift = DriftDetector(lockfile, installer)
        self.state = cmd.PanelState(profile=config.default_profile)

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        workspace_roots: Iterable[str | Path] = (),
        client: httpx.AsyncClient | None = None,
    ) -> "SyncService":
        cache = ContentCache(config.cache_dir)
        remote = GitHubSource(
            repo=config.repo,
            commands_path=config.commands_path,
            api_base=config.api_base,
            token=config.github_token or None,
            client=client,
        )
        lockfile = VersionLockfile(
            commands_path=config.commands_path, namespace=config.namespace
        )
        installer = Installer(
            lockfile,
            user_root=config.user_root,
            auto_add_gitignore=config.auto_add_gitignore,
        )
        return cls(config, CachedSource(remote, cache), cache, lockfile, installer, workspace_roots)

    async def aclose(self) -> None:
        close = getattr(self.source.source, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    @property
    def primary_root(self) -> Path | None:
        return self.workspace_roots[0] if self.workspace_roots else None

    def resolve_installed(self) -> ResolvedInstall | None:
        """The install visible from the primary workspace (workspace wins over user)."""
        return self.lockfile.resolve_installed(self.primary_root, self.config.user_root)

    def installed_targets(self, roots: Iterable[str | Path] | None = None) -> list[ResolvedInstall]:
        """Every distinct install reachable from *roots*, in order."""
        roots = list(roots) if roots is not None else list(self.workspace_roots)
        found: list[ResolvedInstall] = []
        seen: set[Path] = set()
        for root in roots or [None]:
            resolved = self.lockfile.resolve_installed(root, self.config.user_root)
            if resolved is None or resolved.root in seen:
                continue
            seen.add(resolved.root)
            found.append(resolved)
        return found

    def _install_targets(self, roots: Iterable[str | Path] | None) -> list[Path | None]:
        if self.config.install_location == InstallLocation.USER:
            return [None]
        roots = list(roots) if roots is not None else list(self.workspace_roots)
        if not roots:
            raise ConfigurationError(
                "No workspace folder available. Open a folder or install at user level."
            )
        return [Path(r) for r in roots]

    def _require_installed(self) -> ResolvedInstall:
        resolved = self.resolve_installed()
        if resolved is None:
            raise NotInstalledError("No commands installed")
        return resolved

    # ------------------------------------------------------------------
    # Versions and items
    # ------------------------------------------------------------------

    async def list_versions(self, force_refresh: bool = False) -> list[VersionMeta]:
        return await self.source.list_versions(force_refresh=force_refresh)

    async def latest_version(self) -> str:
        latest = select_latest(await self.source.list_versions())
        if latest is None:
            raise ItemNotFoundError("No versions found upstream")
        return latest.name

    async def fetch_items(self, version: str, force_refresh: bool = False) -> list[Item]:
        return await self.source.fetch_items(version, force_refresh=force_refresh)

    async def item_listing(self, version: str) -> list[cmd.CommandInfo]:
        """Items of *version* annotated with their installed state."""
        items = await self.fetch_items(version)
        resolved = self.resolve_installed()
        record = resolved.record if resolved else None

        listing = []
        for item in items:
            locked = record.find(item.identity) if record else None
            listing.append(
                cmd.CommandInfo(
                    identity=item.identity,
                    path=item.path,
                    installed=locked is not None,
                    enabled=not locked.disabled if locked else True,
                    modified=locked.user_modified if locked else False,
                    has_update=(
                        locked is not None
                        and locked.content_hash != content_hash(item.content)
                    ),
                )
            )
        return listing

    # ------------------------------------------------------------------
    # Install / update / uninstall
    # ------------------------------------------------------------------

    async def install(
        self,
        version: str | None = None,
        profile: str | None = None,
        roots: Iterable[str | Path] | None = None,
        force: bool = False,
    ) -> InstallReport:
        """Fetch, validate and install *version* (latest by default).

        Raises:
            ConfigurationError: If a workspace install has no workspace root.
            ValidationFailedError: If validation finds errors and *force* is off.
            ItemNotFoundError: If the version contains no commands.
        """
        targets = self._install_targets(roots)
        version = version or await self.latest_version()
        profile = profile or self.config.default_profile

        items = await self.fetch_items(version)
        if not items:
            raise ItemNotFoundError(f"No commands found in {version}")

        validation = self.validator(items)
        if validation.errors and not force:
            raise ValidationFailedError(
                f"Found {len(validation.errors)} validation error(s) in {version}",
                validation,
            )

        report = InstallReport(version=version, item_count=len(items), validation=validation)
        location = self.config.install_location
        for target in targets:
            root = self.installer.resolve_root(target, location)
            report.results[root] = self.installer.install(target, items, version, profile, location)

        self.cache.put_items(version, items)
        return report

    async def update(
        self, roots: Iterable[str | Path] | None = None, force: bool = False
    ) -> list[UpdateOutcome]:
        """Move every installed target to the latest version.

        Items the user edited by hand are left alone and reported as skipped.

        Raises:
            NotInstalledError: If no target has anything installed.
        """
        targets = self.installed_targets(roots)
        if not targets:
            raise NotInstalledError("No commands installed. Install commands first.")

        latest = await self.latest_version()
        outcomes: list[UpdateOutcome] = []
        items: list[Item] | None = None

        for target in targets:
            record = target.record
            outcome = UpdateOutcome(
                root=target.root,
                current_version=record.version,
                latest_version=latest,
            )
            outcomes.append(outcome)
            if not is_newer(latest, record.version):
                outcome.up_to_date = True
                continue

            if items is None:
                items = await self.fetch_items(latest)
                validation = self.validator(items)
                if validation.errors and not force:
                    raise ValidationFailedError(
                        f"Found {len(validation.errors)} validation error(s) in {latest}",
                        validation,
                    )

            self.drift.scan(target.root)
            diffs = build_diffs(self.installer.read_installed_content(target.root), items)

            root_arg = target.root if target.location == InstallLocation.WORKSPACE else None
            result = self.installer.install(
                root_arg, items, latest, record.profile, target.location
            )
            written = set(result.installed) | set(result.removed)
            outcome.applied = [d.identity for d in diffs if d.identity in written]
            outcome.skipped = list(result.skipped)
            outcome.result = result
            logger.info(outcome.summary())

        if items is not None:
            self.cache.put_items(latest, items)
        return outcomes

    async def check(self, roots: Iterable[str | Path] | None = None) -> dict[Path, UpdateInfo]:
        return await self.checker.check_all(t.root for t in self.installed_targets(roots))

    def scan_drift(
        self, roots: Iterable[str | Path] | None = None, mark: bool = True
    ) -> list[DriftReport]:
        reports = []
        for target in self.installed_targets(roots):
            report = self.drift.scan(target.root, mark=mark)
            if report is not None:
                reports.append(report)
        return reports

    def uninstall(self) -> ResolvedInstall:
        """Remove the install visible from the primary workspace."""
        resolved = self._require_installed()
        root_arg = resolved.root if resolved.location == InstallLocation.WORKSPACE else None
        self.installer.uninstall(root_arg, resolved.location)
        return resolved

    # ------------------------------------------------------------------
    # Per-item operations
    # ------------------------------------------------------------------

    def toggle(self, identity: str, enabled: bool) -> bool:
        """Enable or disable one command in the file and in the lockfile."""
        resolved = self._require_installed()
        root_arg = resolved.root if resolved.location == InstallLocation.WORKSPACE else None
        changed = self.installer.set_enabled(root_arg, identity, enabled, resolved.location)
        self.lockfile.mark_disabled(resolved.root, identity, not enabled)
        return changed

    def preview(self, identity: str) -> str:
        resolved = self._require_installed()
        root_arg = resolved.root if resolved.location == InstallLocation.WORKSPACE else None
        return self.installer.preview(root_arg, identity, resolved.location)

    # ------------------------------------------------------------------
    # Panel state and cache
    # ------------------------------------------------------------------

    async def refresh(self, force: bool = False) -> cmd.PanelState:
        """Rebuild the panel state from the remote (or cache) and the lockfile."""
        online = await self.source.is_online()
        if online:
            versions = await self.source.list_versions(force_refresh=force)
        else:
            versions = self.source.offline_versions()

        resolved = self.resolve_installed()
        items: list[cmd.CommandInfo] = []
        selected = versions[0].name if versions else ""
        profile = self.config.default_profile
        location = None
        if resolved is not None:
            record = resolved.record
            selected = record.version
            profile = record.profile
            location = resolved.location
            items = [
                cmd.CommandInfo(
                    identity=locked.identity,
                    path=locked.path,
                    installed=True,
                    enabled=not locked.disabled,
                    modified=locked.user_modified,
                )
                for locked in record.items
            ]

        self.state = cmd.PanelState(
            versions=[v.name for v in versions],
            selected_version=selected,
            profile=profile,
            items=items,
            is_loading=False,
            is_offline=not online,
            install_location=location,
        )
        return self.state

    def clear_cache(self) -> None:
        self.cache.clear()

    def purge_cache(self) -> list[str]:
        return self.cache.purge_stale()

    # ------------------------------------------------------------------
    # Command dispatch
    # ------------------------------------------------------------------

    async def handle(self, command: cmd.Command) -> list[cmd.Notification]:
        """Run one command and describe its outcome as notifications.

        Sync errors never escape; they become ``ShowError`` notifications.
        """
        loading = isinstance(command, (cmd.Refresh, cmd.FetchItems, cmd.Install, cmd.Update))
        notes: list[cmd.Notification] = [cmd.SetLoading(True)] if loading else []
        try:
            notes.extend(await self._dispatch(command))
        except (SyncError, OSError) as exc:
            logger.debug("%s failed: %s", type(command).__name__, exc)
            notes.append(cmd.ShowError(str(exc), failure_kind(exc)))
            if loading:
                notes.append(cmd.SetLoading(False))
        return notes

    async def _dispatch(self, command: cmd.Command) -> list[cmd.Notification]:
        if isinstance(command, cmd.Refresh):
            return [cmd.SetState(await self.refresh(command.force))]

        if isinstance(command, cmd.FetchVersions):
            versions = await self.list_versions()
            self.state = replace(self.state, versions=[v.name for v in versions])
            return [cmd.SetState(self.state)]

        if isinstance(command, cmd.FetchItems):
            listing = await self.item_listing(command.version)
            self.state = replace(
                self.state,
                items=listing,
                selected_version=command.version,
                is_loading=False,
            )
            return [cmd.SetState(self.state)]

        if isinstance(command, cmd.Install):
            report = await self.install(command.version, command.profile, force=command.force)
            if report.success:
                notes = [cmd.ShowSuccess(f"Installed {report.item_count} commands ({report.version})")]
            else:
                notes = [
                    cmd.ShowError(
                        f"Install failed: {', '.join(report.errors)}", cmd.FailureKind.PARTIAL
                    )
                ]
            return notes + [cmd.SetState(await self.refresh())]

        if isinstance(command, cmd.Update):
            outcomes = await self.update(force=command.force)
            notes = []
            for outcome in outcomes:
                if outcome.result is not None and not outcome.result.success:
                    notes.append(cmd.ShowError(outcome.summary(), cmd.FailureKind.PARTIAL))
                else:
                    notes.append(cmd.ShowSuccess(outcome.summary()))
            return notes + [cmd.SetState(await self.refresh())]

        if isinstance(command, cmd.Uninstall):
            self.uninstall()
            return [
                cmd.ShowSuccess("Commands removed successfully"),
                cmd.SetState(await self.refresh()),
            ]

        if isinstance(command, cmd.Toggle):
            self.toggle(command.identity, command.enabled)
            return [cmd.SetState(await self.refresh())]

        if isinstance(command, cmd.Preview):
            return [cmd.ShowContent(command.identity, self.preview(command.identity))]

        if isinstance(command, cmd.ClearCache):
            self.clear_cache()
            return [cmd.ShowSuccess("Cache cleared")]

        if isinstance(command, cmd.PurgeCache):
            purged = self.purge_cache()
            return [cmd.ShowSuccess(f"Purged {len(purged)} stale cache entries")]

        raise TypeError(f"Unknown command: {command!r}")
