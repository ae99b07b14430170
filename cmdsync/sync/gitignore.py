"""Keep synced command files out of a workspace's version control.

The block added to ``.gitignore`` is introduced by a marker comment, so
adding is idempotent and removal only touches lines this module wrote.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from cmdsync.utils.file_store import FileStore, LocalFileStore

logger = logging.getLogger(__name__)

GITIGNORE_MARKER = "# cmdsync managed commands"


def gitignore_entries(namespace: str, commands_path: str) -> list[str]:
    base = commands_path.rstrip("/")
    return [
        GITIGNORE_MARKER,
        f"{base}/{namespace}/",
        f"{base}/{namespace}.lock.json",
    ]


def _read(store: FileStore, path: Path) -> str | None:
    try:
        return store.read_text(path)
    except FileNotFoundError:
        return None


def is_in_gitignore(root: str | Path, store: FileStore | None = None) -> bool:
    store = store or LocalFileStore()
    try:
        content = _read(store, Path(root) / ".gitignore")
    except (OSError, UnicodeDecodeError):
        return False
    return content is not None and GITIGNORE_MARKER in content


def add_to_gitignore(
    root: str | Path,
    namespace: str,
    commands_path: str,
    store: FileStore | None = None,
) -> bool:
    """Append the managed block to ``.gitignore``, creating it if needed.

    Returns True when the file was changed.
    """
    store = store or LocalFileStore()
    path = Path(root) / ".gitignore"
    existing = _read(store, path) or ""

    if GITIGNORE_MARKER in existing:
        return False

    block = "\n".join(gitignore_entries(namespace, commands_path)) + "\n"
    content = existing.rstrip() + "\n\n" + block if existing.strip() else block
    store.write(path, content)
    logger.debug("Added managed entries to %s", path)
    return True


def remove_from_gitignore(
    root: str | Path,
    namespace: str,
    commands_path: str,
    store: FileStore | None = None,
) -> bool:
    """Remove the managed block. Returns True when the file was changed."""
    store = store or LocalFileStore()
    path = Path(root) / ".gitignore"
    existing = _read(store, path)
    if existing is None or GITIGNORE_MARKER not in existing:
        return False

    text = existing
    for entry in gitignore_entries(namespace, commands_path):
        text = text.replace(entry + "\n", "")
    text = re.sub(r"\n{3,}", "\n\n", text)

    store.write(path, text)
    logger.debug("Removed managed entries from %s", path)
    return True
