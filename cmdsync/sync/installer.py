"""Installer — write upstream items into a target without clobbering edits.

Installed files live in ``<root>/<commands_path>/<namespace>/``. Before an
existing file is overwritten its hash is checked against the lockfile; a
mismatch means the user edited it, and that item is skipped with an error
instead. Every install ends by rewriting the target's lockfile, so a
partially applied batch always converges to a consistent record.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from cmdsync.errors import ConfigurationError, ItemNotFoundError
from cmdsync.lockfile import VersionLockfile
from cmdsync.models import (
    InstallLocation,
    InstallResult,
    Item,
    ItemState,
    LockedItem,
    LockfileRecord,
)
from cmdsync.sync.filenames import (
    COMMAND_EXTENSIONS,
    filename_for_state,
    identity_from_filename,
    install_filename,
    state_from_filename,
)
from cmdsync.sync.gitignore import add_to_gitignore, remove_from_gitignore
from cmdsync.utils.file_store import FileStore
from cmdsync.utils.hashing import content_hash

logger = logging.getLogger(__name__)

USER_MODIFIED_MESSAGE = "User-modified file, skipping"


class UserModifiedConflict(Exception):
    """An installed file no longer matches the hash recorded for it."""


class Installer:
    """Applies item sets to installation targets."""

    def __init__(
        self,
        lockfile: VersionLockfile,
        store: FileStore | None = None,
        user_root: str | Path | None = None,
        auto_add_gitignore: bool = True,
    ):
        self.lockfile = lockfile
        self.store = store or lockfile.store
        self.user_root = Path(user_root) if user_root else Path.home()
        self.auto_add_gitignore = auto_add_gitignore

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def resolve_root(
        self, workspace_root: str | Path | None, location: InstallLocation
    ) -> Path:
        if location == InstallLocation.USER:
            return self.user_root
        if workspace_root is None:
            raise ConfigurationError(
                "No workspace folder available. Open a folder or install at user level."
            )
        return Path(workspace_root)

    def install_dir(self, root: str | Path) -> Path:
        return Path(root) / self.lockfile.commands_path / self.lockfile.namespace

    # ------------------------------------------------------------------
    # Install / uninstall
    # ------------------------------------------------------------------

    def install(
        self,
        workspace_root: str | Path | None,
        items: list[Item],
        version: str,
        profile: str,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> InstallResult:
        """Install *items* as *version* into the target.

        Raises:
            ConfigurationError: If a workspace install has no workspace root.
        """
        root = self.resolve_root(workspace_root, location)
        install_dir = self.install_dir(root)
        result = InstallResult()

        try:
            self.store.mkdir(install_dir)
        except OSError as exc:
            result.success = False
            result.errors.append(f"Could not create {install_dir}: {exc}")
            return result

        previous = self.lockfile.read(root)
        records: list[LockedItem] = []

        for item in items:
            locked = previous.find(item.identity) if previous else None
            try:
                records.append(self._install_item(install_dir, item, locked))
                result.installed_count += 1
                result.installed.append(item.identity)
            except UserModifiedConflict:
                logger.info("Skipping %s: modified since last install", item.identity)
                result.errors.append(f"{item.identity}: {USER_MODIFIED_MESSAGE}")
                result.skipped_count += 1
                result.skipped.append(item.identity)
                records.append(replace(locked, user_modified=True))
            except OSError as exc:
                logger.warning("Failed to install %s: %s", item.identity, exc)
                result.errors.append(f"{item.identity}: {exc}")
                result.skipped_count += 1
                result.skipped.append(item.identity)
                records.append(locked or LockedItem(item.identity, item.path, ""))

        if previous is not None:
            new_identities = {item.identity for item in items}
            for locked in previous.items:
                if locked.identity in new_identities:
                    continue
                try:
                    removed = self._remove_item(install_dir, locked)
                except OSError as exc:
                    logger.warning("Failed to remove %s: %s", locked.identity, exc)
                    result.errors.append(f"{locked.identity}: {exc}")
                    records.append(locked)
                    continue
                if removed:
                    result.removed_count += 1
                    result.removed.append(locked.identity)
                else:
                    records.append(replace(locked, user_modified=True))

        if location == InstallLocation.WORKSPACE and self.auto_add_gitignore:
            try:
                add_to_gitignore(
                    root, self.lockfile.namespace, self.lockfile.commands_path, self.store
                )
            except OSError as exc:
                logger.warning("Could not update .gitignore in %s: %s", root, exc)

        try:
            self.lockfile.write(
                root,
                LockfileRecord(
                    version=version,
                    profile=profile,
                    items=records,
                    location=location,
                ),
            )
        except OSError as exc:
            result.errors.append(f"Could not write lockfile: {exc}")

        result.success = not result.errors
        logger.info(
            "Installed %d/%d item(s) of %s into %s",
            result.installed_count,
            len(items),
            version,
            install_dir,
        )
        return result

    def uninstall(
        self,
        workspace_root: str | Path | None,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> None:
        """Remove every installed item and the lockfile of the target."""
        root = self.resolve_root(workspace_root, location)
        try:
            self.store.delete(self.install_dir(root), recursive=True)
        except OSError as exc:
            logger.debug("Could not remove %s: %s", self.install_dir(root), exc)
        self.lockfile.delete(root)

        if location == InstallLocation.WORKSPACE:
            try:
                remove_from_gitignore(
                    root, self.lockfile.namespace, self.lockfile.commands_path, self.store
                )
            except OSError as exc:
                logger.warning("Could not update .gitignore in %s: %s", root, exc)

    # ------------------------------------------------------------------
    # Installed state
    # ------------------------------------------------------------------

    def list_installed(
        self,
        workspace_root: str | Path | None,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> list[str]:
        """Identities of installed, enabled items."""
        states = self.installed_states(workspace_root, location)
        return sorted(i for i, state in states.items() if state == ItemState.ENABLED)

    def installed_states(
        self,
        workspace_root: str | Path | None,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> dict[str, ItemState]:
        root = self.resolve_root(workspace_root, location)
        return {
            identity_from_filename(name): state_from_filename(name)
            for name in self._installed_files(self.install_dir(root))
        }

    def set_enabled(
        self,
        workspace_root: str | Path | None,
        identity: str,
        enabled: bool,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> bool:
        """Enable or disable one installed item by renaming its file.

        Returns False when the file is already in the requested state. The
        lockfile's ``disabled`` flag is not touched here.

        Raises:
            ItemNotFoundError: If no installed file matches *identity*.
        """
        root = self.resolve_root(workspace_root, location)
        install_dir = self.install_dir(root)

        current = next(
            (n for n in self._installed_files(install_dir) if identity_from_filename(n) == identity),
            None,
        )
        if current is None:
            raise ItemNotFoundError(f"Command not found: {identity}")

        desired = ItemState.ENABLED if enabled else ItemState.DISABLED
        if state_from_filename(current) == desired:
            return False

        target = filename_for_state(current, desired)
        self.store.rename(install_dir / current, install_dir / target)
        logger.info("%s %s", "Enabled" if enabled else "Disabled", identity)
        return True

    def read_installed_content(self, root: str | Path) -> dict[str, str]:
        """Map identity -> content for every installed file under *root*."""
        install_dir = self.install_dir(root)
        content: dict[str, str] = {}
        for name in self._installed_files(install_dir):
            try:
                content[identity_from_filename(name)] = self.store.read_text(install_dir / name)
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Could not read %s: %s", name, exc)
        return content

    def preview(
        self,
        workspace_root: str | Path | None,
        identity: str,
        location: InstallLocation = InstallLocation.WORKSPACE,
    ) -> str:
        """Return the installed content of *identity*.

        Raises:
            ItemNotFoundError: If no installed file matches *identity*.
        """
        install_dir = self.install_dir(self.resolve_root(workspace_root, location))
        for extension in COMMAND_EXTENSIONS:
            for state in ItemState:
                name = filename_for_state(f"{identity}{extension}", state)
                try:
                    return self.store.read_text(install_dir / name)
                except FileNotFoundError:
                    continue
        raise ItemNotFoundError(f"Could not find command file: {identity}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _installed_files(self, install_dir: Path) -> list[str]:
        try:
            entries = self.store.list(install_dir)
        except OSError:
            return []
        return [name for name, is_file in entries if is_file]

    def _install_item(
        self, install_dir: Path, item: Item, locked: LockedItem | None
    ) -> LockedItem:
        file_name = install_filename(item.path, item.identity)
        state = self._current_state(install_dir, file_name, locked)
        target = install_dir / filename_for_state(file_name, state)

        if locked is not None and self.store.exists(target):
            if content_hash(self.store.read(target)) != locked.content_hash:
                raise UserModifiedConflict(item.identity)

        self.store.write(target, item.content)
        return LockedItem(
            identity=item.identity,
            path=item.path,
            content_hash=content_hash(item.content),
            disabled=state == ItemState.DISABLED,
        )

    def _current_state(
        self, install_dir: Path, file_name: str, locked: LockedItem | None
    ) -> ItemState:
        """The on-disk marker wins; the lockfile flag decides for new files."""
        if self.store.exists(install_dir / filename_for_state(file_name, ItemState.DISABLED)):
            return ItemState.DISABLED
        if self.store.exists(install_dir / file_name):
            return ItemState.ENABLED
        return locked.state if locked is not None else ItemState.ENABLED

    def _remove_item(self, install_dir: Path, locked: LockedItem) -> bool:
        """Delete an item dropped upstream. Returns False if it was kept.

        Every existing copy is checked before any is deleted, so an edited
        copy keeps its siblings too.
        """
        file_name = install_filename(locked.path, locked.identity)
        present: list[Path] = []
        for state in ItemState:
            path = install_dir / filename_for_state(file_name, state)
            try:
                data = self.store.read(path)
            except FileNotFoundError:
                continue
            if content_hash(data) != locked.content_hash:
                logger.info("Keeping %s: removed upstream but modified locally", locked.identity)
                return False
            present.append(path)

        for path in present:
            self.store.delete(path)
        return True
