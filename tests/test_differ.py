"""Tests for the reconciler: hash comparison, diffs and partitioning."""

from cmdsync.models import Diff, DiffKind, Item, LockedItem
from cmdsync.sync.differ import (
    build_diffs,
    compare,
    compare_hashes,
    partition_by_user_modification,
    summarize_diff,
)
from cmdsync.utils.hashing import content_hash


def _item(identity: str, content: str) -> Item:
    return Item(identity, f".claude/commands/{identity}.md", content)


# --- Compare Tests ---


def test_upgrade_scenario_changed_and_added():
    # Installed v1.0.0 has only "a"; v1.1.0 edits "a" and adds "b"
    local = [LockedItem("a", ".claude/commands/a.md", content_hash("a v1"))]
    remote = [_item("a", "a v2"), _item("b", "b v1")]

    result = compare(local, remote)
    assert result.changed == ["a"]
    assert result.added == ["b"]
    assert result.removed == []
    assert result.unchanged == []
    assert result.total_changes == 2


def test_compare_unchanged_and_removed():
    local = [
        LockedItem("a", "a.md", content_hash("same")),
        LockedItem("gone", "gone.md", content_hash("old")),
    ]
    result = compare(local, [_item("a", "same")])
    assert result.unchanged == ["a"]
    assert result.removed == ["gone"]
    assert result.has_changes


def test_compare_hashes_partitions_every_identity_once():
    local = {"a": "1", "b": "2", "c": "3"}
    remote = {"b": "2", "c": "x", "d": "4"}
    result = compare_hashes(local, remote)
    buckets = result.added + result.removed + result.changed + result.unchanged
    assert sorted(buckets) == ["a", "b", "c", "d"]
    assert len(buckets) == len(set(buckets))


def test_empty_hash_never_matches():
    result = compare_hashes({"a": ""}, {"a": ""})
    assert result.changed == ["a"]
    assert not result.unchanged


def test_identical_maps_have_no_changes():
    result = compare_hashes({"a": "1"}, {"a": "1"})
    assert not result.has_changes


# --- Diff Tests ---


def test_build_diffs_carries_full_content():
    local = {"a": "old a", "same": "x", "gone": "bye"}
    remote = [_item("a", "new a"), _item("same", "x"), _item("fresh", "hi")]

    diffs = {d.identity: d for d in build_diffs(local, remote)}
    assert set(diffs) == {"a", "fresh", "gone"}
    assert diffs["a"].kind == DiffKind.MODIFIED
    assert (diffs["a"].old_content, diffs["a"].new_content) == ("old a", "new a")
    assert diffs["fresh"].kind == DiffKind.ADDED and diffs["fresh"].old_content == ""
    assert diffs["gone"].kind == DiffKind.REMOVED and diffs["gone"].new_content == ""


def test_partition_by_user_modification_is_complete():
    diffs = [
        Diff("a", "1", "2", DiffKind.MODIFIED),
        Diff("b", "1", "2", DiffKind.MODIFIED),
        Diff("c", "", "3", DiffKind.ADDED),
    ]
    parts = partition_by_user_modification(diffs, ["b", "not-in-diffs"])
    assert [d.identity for d in parts.to_apply] == ["a", "c"]
    assert [d.identity for d in parts.skipped] == ["b"]
    assert len(parts.to_apply) + len(parts.skipped) == len(diffs)


def test_partition_with_nothing_modified():
    diffs = [Diff("a", "1", "2", DiffKind.MODIFIED)]
    parts = partition_by_user_modification(diffs, [])
    assert parts.to_apply == diffs
    assert parts.skipped == []


def test_summarize_diff():
    assert summarize_diff(Diff("a", "", "x", DiffKind.ADDED)) == "New command"
    assert summarize_diff(Diff("a", "x", "", DiffKind.REMOVED)) == "Will be removed"
    assert summarize_diff(Diff("a", "1", "1\n2\n3", DiffKind.MODIFIED)) == "+2 lines"
    assert summarize_diff(Diff("a", "1\n2", "1", DiffKind.MODIFIED)) == "-1 lines"
    assert summarize_diff(Diff("a", "1", "2", DiffKind.MODIFIED)) == "Modified"
