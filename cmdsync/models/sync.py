"""Derived sync results: comparisons, diffs, install and update outcomes.

None of these are persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DiffKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class ComparisonResult:
    """Identities classified by comparing a local and a remote hash map."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.removed) + len(self.changed)


@dataclass
class Diff:
    """Old and new content of one item, for presentation."""

    identity: str
    old_content: str
    new_content: str
    kind: DiffKind


@dataclass
class InstallResult:
    """Outcome of installing an item set into one target.

    Partial success is normal: ``success`` is False as soon as one item
    was skipped, while ``installed_count`` still reports what was written.
    """

    success: bool = True
    installed_count: int = 0
    skipped_count: int = 0
    removed_count: int = 0
    errors: list[str] = field(default_factory=list)
    # Identities behind the counts
    installed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.installed_count > 0 and self.skipped_count > 0


@dataclass
class UpdateInfo:
    """Result of checking one target for a newer upstream version."""

    current_version: str
    latest_version: str
    has_update: bool = False
    changed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.changed) + len(self.added) + len(self.removed)

    def summary(self) -> str:
        if not self.has_update:
            return f"Up to date ({self.current_version})"
        return (
            f"Update available: {self.current_version} -> {self.latest_version} "
            f"({len(self.changed)} changed, {len(self.added)} added, "
            f"{len(self.removed)} removed)"
        )


@dataclass
class RateLimitState:
    """Remote API quota, threaded through the transport explicitly."""

    remaining: int = 60
    reset_at: float = 0.0  # Unix timestamp, seconds

    def exhausted(self, now: float) -> bool:
        return self.remaining <= 0 and now < self.reset_at
