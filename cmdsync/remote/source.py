"""Protocol for upstream command sources.

The engine only needs two things from a source: its list of versions and
the items of one version. Failures must distinguish "could not reach the
remote" (``NetworkUnreachableError``, eligible for cache fallback) from
everything else (``RemoteProtocolError``, always propagated).
"""

from __future__ import annotations

from typing import Protocol

from cmdsync.models import Item, VersionMeta


class RemoteSource(Protocol):
    """An upstream repository of versioned command files."""

    async def list_versions(self) -> list[VersionMeta]:
        """Return versions in the source's native order.

        Raises:
            NetworkUnreachableError: If the source cannot be reached.
            RemoteProtocolError: For any other failure.
        """
        ...

    async def fetch_items(self, version: str) -> list[Item]:
        """Return every command item of *version*.

        Raises:
            NetworkUnreachableError: If the source cannot be reached.
            RemoteProtocolError: For any other failure.
        """
        ...
