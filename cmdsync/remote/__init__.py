"""Upstream sources of command files."""

from cmdsync.remote.cached_source import CachedSource
from cmdsync.remote.github import GitHubSource
from cmdsync.remote.source import RemoteSource

__all__ = ["CachedSource", "GitHubSource", "RemoteSource"]
