"""Lockfile data models — what was installed, from where, in what state.

The JSON shape is a stable on-disk format::

    {
      "tag": "v1.2.0",
      "profile": "full",
      "location": "workspace",
      "commands": [{"name": "...", "path": "...", "hash": "...",
                    "disabled": true, "userModified": true}],
      "timestamp": "2024-12-24T00:00:00.000Z"
    }

``location`` is absent in records written before user-scope installs
existed; those are workspace records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from cmdsync.utils.timeutil import format_timestamp, utc_now


class InstallLocation(Enum):
    """Where an install lives."""

    WORKSPACE = "workspace"  # Under a workspace root
    USER = "user"  # Under the user's home directory, shared by all workspaces


class ItemState(Enum):
    """Whether an installed command is loaded by downstream consumers."""

    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass
class LockedItem:
    """Per-item record inside a lockfile."""

    identity: str
    path: str
    content_hash: str
    disabled: bool = False
    user_modified: bool = False

    @property
    def state(self) -> ItemState:
        return ItemState.DISABLED if self.disabled else ItemState.ENABLED

    def to_dict(self) -> dict:
        data = {"name": self.identity, "path": self.path, "hash": self.content_hash}
        if self.disabled:
            data["disabled"] = True
        if self.user_modified:
            data["userModified"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict) -> LockedItem:
        return cls(
            identity=data["name"],
            path=data.get("path", ""),
            content_hash=data.get("hash", ""),
            disabled=bool(data.get("disabled", False)),
            user_modified=bool(data.get("userModified", False)),
        )


@dataclass
class LockfileRecord:
    """The single durable record for one installation target."""

    version: str
    profile: str
    items: list[LockedItem] = field(default_factory=list)
    written_at: str = ""  # ISO 8601
    location: InstallLocation = InstallLocation.WORKSPACE

    def __post_init__(self) -> None:
        if not self.written_at:
            self.written_at = format_timestamp(utc_now())

    def find(self, identity: str) -> LockedItem | None:
        for item in self.items:
            if item.identity == identity:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "tag": self.version,
            "profile": self.profile,
            "location": self.location.value,
            "commands": [item.to_dict() for item in self.items],
            "timestamp": self.written_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LockfileRecord:
        """Build a record from parsed JSON.

        Raises:
            KeyError, TypeError, ValueError: If the payload is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("Lockfile payload must be a JSON object")
        return cls(
            version=data["tag"],
            profile=data.get("profile", ""),
            items=[LockedItem.from_dict(c) for c in data.get("commands", [])],
            written_at=data.get("timestamp", ""),
            location=InstallLocation(data.get("location") or InstallLocation.WORKSPACE.value),
        )
