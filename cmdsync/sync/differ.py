"""Classify local vs remote items by content hash.

Pure computation: nothing here touches the filesystem or the network.
Identity is the join key; a path change under the same identity is just
a content comparison, and there is no rename tracking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from cmdsync.models import ComparisonResult, Diff, DiffKind, Item, LockedItem
from cmdsync.utils.hashing import content_hash


@dataclass
class PartitionedDiffs:
    """Diffs split by whether the user hand-edited the local file."""

    to_apply: list[Diff] = field(default_factory=list)
    skipped: list[Diff] = field(default_factory=list)


def compare_hashes(local: dict[str, str], remote: dict[str, str]) -> ComparisonResult:
    """Partition the union of two identity->hash maps.

    Every remote identity lands in exactly one of added/changed/unchanged,
    every local-only identity in removed. Hashes must match exactly; an
    empty hash on either side is never considered a match.
    """
    result = ComparisonResult()

    for identity, remote_hash in remote.items():
        if identity not in local:
            result.added.append(identity)
        elif not remote_hash or local[identity] != remote_hash:
            result.changed.append(identity)
        else:
            result.unchanged.append(identity)

    for identity in local:
        if identity not in remote:
            result.removed.append(identity)

    return result


def compare(local: Iterable[LockedItem], remote: Iterable[Item]) -> ComparisonResult:
    """Compare lockfile records against a freshly fetched item set."""
    local_map = {item.identity: item.content_hash for item in local}
    remote_map = {item.identity: content_hash(item.content) for item in remote}
    return compare_hashes(local_map, remote_map)


def build_diffs(local_content: dict[str, str], remote: Iterable[Item]) -> list[Diff]:
    """Build presentation diffs carrying full old and new content.

    Items whose content is identical on both sides produce no diff.
    """
    diffs: list[Diff] = []
    remote_map = {item.identity: item for item in remote}

    for identity, item in remote_map.items():
        if identity not in local_content:
            diffs.append(Diff(identity, "", item.content, DiffKind.ADDED))
        elif local_content[identity] != item.content:
            diffs.append(Diff(identity, local_content[identity], item.content, DiffKind.MODIFIED))

    for identity, content in local_content.items():
        if identity not in remote_map:
            diffs.append(Diff(identity, content, "", DiffKind.REMOVED))

    return diffs


def partition_by_user_modification(
    diffs: Iterable[Diff], modified_identities: Iterable[str]
) -> PartitionedDiffs:
    """Split diffs into those safe to apply and those the user hand-edited.

    *modified_identities* comes from the lockfile's ``userModified`` flags;
    nothing is re-hashed here.
    """
    modified = set(modified_identities)
    result = PartitionedDiffs()
    for diff in diffs:
        if diff.identity in modified:
            result.skipped.append(diff)
        else:
            result.to_apply.append(diff)
    return result


def summarize_diff(diff: Diff) -> str:
    """One-line description of a diff for listings."""
    if diff.kind == DiffKind.ADDED:
        return "New command"
    if diff.kind == DiffKind.REMOVED:
        return "Will be removed"

    line_delta = len(diff.new_content.split("\n")) - len(diff.old_content.split("\n"))
    if line_delta > 0:
        return f"+{line_delta} lines"
    if line_delta < 0:
        return f"{line_delta} lines"
    return "Modified"
