"""Exceptions raised by the synchronization engine.

Cache misses and stale or corrupt cache entries are not exceptions; the
cache reports them as empty results. User-modified conflicts during an
install are recorded per item in the install result.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync operations."""


class NetworkUnreachableError(SyncError):
    """Raised when the remote source cannot be reached at all."""


class RemoteProtocolError(SyncError):
    """Raised for any non-network failure reported by the remote source."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(SyncError):
    """Raised when an operation cannot start because of its configuration."""


class ItemNotFoundError(SyncError):
    """Raised when no installed file matches a command identity."""


class NotInstalledError(SyncError):
    """Raised when an operation needs an existing install and there is none."""


class ValidationFailedError(SyncError):
    """Raised when fetched commands fail validation and the install is not forced."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result
