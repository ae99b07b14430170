"""Upstream versions and the items they carry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Item:
    """One synchronizable command file from a specific upstream version."""

    identity: str  # File name minus its known extension
    path: str  # Slash-separated path inside the upstream repo
    content: str
    content_ref: str = ""  # Origin-side content id (git blob sha)

    def to_dict(self) -> dict:
        return {
            "name": self.identity,
            "path": self.path,
            "content": self.content,
            "sha": self.content_ref,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Item:
        return cls(
            identity=data["name"],
            path=data["path"],
            content=data.get("content", ""),
            content_ref=data.get("sha", ""),
        )


@dataclass
class VersionMeta:
    """An upstream version (a git tag)."""

    name: str
    commit_sha: str = ""
    commit_url: str = ""
    zipball_url: str = ""
    tarball_url: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "commit": {"sha": self.commit_sha, "url": self.commit_url},
            "zipball_url": self.zipball_url,
            "tarball_url": self.tarball_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> VersionMeta:
        commit = data.get("commit") or {}
        return cls(
            name=data["name"],
            commit_sha=commit.get("sha", ""),
            commit_url=commit.get("url", ""),
            zipball_url=data.get("zipball_url", ""),
            tarball_url=data.get("tarball_url", ""),
        )


@dataclass
class CacheEntry(Generic[T]):
    """A cached payload stamped with the time it was written."""

    payload: T
    cached_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.cached_at

    def is_valid(self, now: datetime, ttl: timedelta) -> bool:
        """An entry is valid while its age is at most *ttl* (inclusive)."""
        return self.age(now) <= ttl
