"""Filesystem primitives the sync engine relies on.

Components take a ``FileStore`` so they can be pointed at something other
than the local disk. ``LocalFileStore`` is the only implementation shipped.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol


class FileStore(Protocol):
    """Filesystem contract used by the cache, lockfile and installer."""

    def read(self, path: Path) -> bytes:
        """Return file bytes. Raises FileNotFoundError if absent."""
        ...

    def read_text(self, path: Path) -> str:
        """Return file content decoded as UTF-8."""
        ...

    def write(self, path: Path, data: bytes | str) -> None:
        """Replace *path* with *data*, creating parent directories."""
        ...

    def delete(self, path: Path, recursive: bool = False) -> None:
        """Delete a file (or a tree when *recursive*). Absence is not an error."""
        ...

    def list(self, directory: Path) -> list[tuple[str, bool]]:
        """Return ``(name, is_file)`` pairs. Raises FileNotFoundError if absent."""
        ...

    def mkdir(self, path: Path) -> None:
        """Create a directory tree. Existing directories are not an error."""
        ...

    def rename(self, source: Path, target: Path) -> None:
        ...

    def stat(self, path: Path) -> int:
        """Return the size of a file in bytes."""
        ...

    def exists(self, path: Path) -> bool:
        ...


class LocalFileStore:
    """``FileStore`` backed by the local filesystem.

    Writes go to a temporary file in the destination directory which is
    then renamed over the target, so readers never observe a truncated
    file after a crash.
    """

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def read_text(self, path: Path) -> str:
        return self.read(path).decode("utf-8")

    def write(self, path: Path, data: bytes | str) -> None:
        path = Path(path)
        if isinstance(data, str):
            data = data.encode("utf-8")
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=str(path.parent),
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
                temp_path = Path(tmp.name)
            os.replace(temp_path, path)
            temp_path = None
        finally:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def delete(self, path: Path, recursive: bool = False) -> None:
        path = Path(path)
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path, ignore_errors=True)
            else:
                path.rmdir()
            return
        path.unlink(missing_ok=True)

    def list(self, directory: Path) -> list[tuple[str, bool]]:
        directory = Path(directory)
        return sorted((entry.name, entry.is_file()) for entry in directory.iterdir())

    def mkdir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def rename(self, source: Path, target: Path) -> None:
        Path(source).rename(Path(target))

    def stat(self, path: Path) -> int:
        return Path(path).stat().st_size

    def exists(self, path: Path) -> bool:
        return Path(path).exists()
