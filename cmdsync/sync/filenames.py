"""Naming of installed files. Only this module knows the on-disk conventions.

A disabled command keeps its content but gains a ``.disabled`` suffix, so
downstream consumers stop loading it. Everything else in the engine works
with ``ItemState`` and identities.
"""

from __future__ import annotations

import re

from cmdsync.models import ItemState

DISABLED_SUFFIX = ".disabled"
COMMAND_EXTENSIONS = (".md", ".yaml", ".yml")

_EXTENSION_RE = re.compile(r"\.(md|yaml|yml)$")


def is_command_file(name: str) -> bool:
    return name.endswith(COMMAND_EXTENSIONS)


def identity_from_filename(name: str) -> str:
    """Strip the disabled marker and a known extension from a file name."""
    return _EXTENSION_RE.sub("", enabled_filename(name))


def identity_from_path(path: str) -> str:
    """Identity of an upstream item from its slash-separated repo path."""
    return identity_from_filename(path.rsplit("/", 1)[-1])


def state_from_filename(name: str) -> ItemState:
    return ItemState.DISABLED if name.endswith(DISABLED_SUFFIX) else ItemState.ENABLED


def enabled_filename(name: str) -> str:
    if name.endswith(DISABLED_SUFFIX):
        return name[: -len(DISABLED_SUFFIX)]
    return name


def filename_for_state(name: str, state: ItemState) -> str:
    """Return *name* carrying the marker appropriate for *state*."""
    base = enabled_filename(name)
    if state == ItemState.DISABLED:
        return base + DISABLED_SUFFIX
    return base


def install_filename(path: str, identity: str) -> str:
    """File name an item is installed under: the last component of its path."""
    name = path.rsplit("/", 1)[-1] if path else ""
    return name or f"{identity}.md"
