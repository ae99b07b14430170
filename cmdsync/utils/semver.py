"""Semantic version parsing for picking the latest upstream tag.

Only the leading ``major.minor.patch`` triple is compared; an optional
``v`` prefix is stripped and anything after the patch number (pre-release
or build metadata) is ignored. Tags that do not start with a dotted
numeric triple are not comparable and never win latest-selection.
"""

from __future__ import annotations

import re
from typing import Iterable, TypeVar

_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)")

T = TypeVar("T")


def parse_semver(tag: str) -> tuple[int, int, int] | None:
    """Parse *tag* into a ``(major, minor, patch)`` tuple, or None."""
    version = tag[1:] if tag.startswith("v") else tag
    match = _SEMVER_RE.match(version)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def compare_semver(a: tuple[int, int, int], b: tuple[int, int, int]) -> int:
    """Return a positive number if a > b, negative if a < b, 0 if equal."""
    for left, right in zip(a, b):
        if left != right:
            return left - right
    return 0


def latest_version(tags: Iterable[T], key=lambda t: t) -> T | None:
    """Return the tag with the highest semantic version.

    *key* maps each element to its tag name, so this works on plain strings
    and on version metadata objects alike. Ties keep the first occurrence.
    """
    latest: T | None = None
    latest_parsed: tuple[int, int, int] | None = None

    for tag in tags:
        parsed = parse_semver(key(tag))
        if parsed is None:
            continue
        if latest_parsed is None or compare_semver(parsed, latest_parsed) > 0:
            latest = tag
            latest_parsed = parsed

    return latest
