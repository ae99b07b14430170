"""Configuration: where to sync from, where to install, where to cache.

Settings come from ``~/.cmdsync/config.yaml`` (all keys optional) and are
then overridden by environment variables::

    CMDSYNC_REPO               owner/name of the upstream repository
    CMDSYNC_INSTALL_LOCATION   workspace | user
    CMDSYNC_CACHE_DIR          cache directory
    CMDSYNC_PROFILE            default install profile
    GITHUB_TOKEN               token for authenticated GitHub requests
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping

import yaml

from cmdsync.errors import ConfigurationError
from cmdsync.models import InstallLocation

DEFAULT_CONFIG_PATH = Path.home() / ".cmdsync" / "config.yaml"

_ENV_OVERRIDES = {
    "CMDSYNC_REPO": "repo",
    "CMDSYNC_INSTALL_LOCATION": "install_location",
    "CMDSYNC_CACHE_DIR": "cache_dir",
    "CMDSYNC_PROFILE": "default_profile",
    "GITHUB_TOKEN": "github_token",
}


@dataclass
class SyncConfig:
    repo: str = "humanlayer/humanlayer"
    commands_path: str = ".claude/commands"
    namespace: str = "humanlayer"
    install_location: InstallLocation = InstallLocation.WORKSPACE
    default_profile: str = "full"
    auto_add_gitignore: bool = True
    auto_update: bool = False
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cmdsync" / "cache")
    user_root: Path = field(default_factory=Path.home)
    api_base: str = "https://api.github.com"
    github_token: str = ""


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Load configuration from YAML and the environment.

    A missing config file means defaults. Unknown keys are ignored.

    Raises:
        ConfigurationError: If the file is not valid YAML or a value is invalid.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    env = os.environ if env is None else env

    raw: dict = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        raw = loaded or {}

    for var, key in _ENV_OVERRIDES.items():
        if env.get(var):
            raw[key] = env[var]

    known = {f.name for f in fields(SyncConfig)}
    values = {k: v for k, v in raw.items() if k in known}

    if "install_location" in values:
        try:
            values["install_location"] = InstallLocation(values["install_location"])
        except ValueError as e:
            raise ConfigurationError(
                f"install_location must be 'workspace' or 'user', got {values['install_location']!r}"
            ) from e
    for key in ("cache_dir", "user_root"):
        if key in values:
            values[key] = Path(str(values[key])).expanduser()
    for key in ("auto_add_gitignore", "auto_update"):
        if key in values and not isinstance(values[key], bool):
            raise ConfigurationError(f"{key} must be true or false")

    return SyncConfig(**values)
