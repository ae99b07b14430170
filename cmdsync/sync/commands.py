"""Messages exchanged between the sync service and a front end.

Commands flow in, notifications flow out. Both are plain data so any
front end (the CLI, a panel, a test) can drive the service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from cmdsync.models import InstallLocation


class FailureKind(Enum):
    RETRYABLE = "retryable"  # Network or cache trouble; try again later
    PARTIAL = "partial"  # Some items installed, some skipped
    NOT_APPLICABLE = "not_applicable"  # Nothing installed to act on
    FAILED = "failed"


@dataclass
class CommandInfo:
    """One command as shown in a listing."""

    identity: str
    path: str
    installed: bool = False
    enabled: bool = True
    modified: bool = False
    has_update: bool = False


@dataclass
class PanelState:
    versions: list[str] = field(default_factory=list)
    selected_version: str = ""
    profile: str = "full"
    items: list[CommandInfo] = field(default_factory=list)
    is_loading: bool = False
    is_offline: bool = False
    install_location: InstallLocation | None = None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Refresh:
    force: bool = False


@dataclass(frozen=True)
class FetchVersions:
    pass


@dataclass(frozen=True)
class FetchItems:
    version: str


@dataclass(frozen=True)
class Install:
    version: str
    profile: str = "full"
    force: bool = False


@dataclass(frozen=True)
class Update:
    force: bool = False


@dataclass(frozen=True)
class Uninstall:
    pass


@dataclass(frozen=True)
class Toggle:
    identity: str
    enabled: bool


@dataclass(frozen=True)
class Preview:
    identity: str


@dataclass(frozen=True)
class ClearCache:
    pass


@dataclass(frozen=True)
class PurgeCache:
    pass


Command = Union[
    Refresh,
    FetchVersions,
    FetchItems,
    Install,
    Update,
    Uninstall,
    Toggle,
    Preview,
    ClearCache,
    PurgeCache,
]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetState:
    state: PanelState


@dataclass(frozen=True)
class SetLoading:
    is_loading: bool


@dataclass(frozen=True)
class ShowSuccess:
    message: str


@dataclass(frozen=True)
class ShowError:
    message: str
    kind: FailureKind = FailureKind.FAILED


@dataclass(frozen=True)
class ShowContent:
    identity: str
    content: str


Notification = Union[SetState, SetLoading, ShowSuccess, ShowError, ShowContent]
