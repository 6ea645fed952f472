"""Configuration for a gitrows store.

A :class:`GitRowsConfig` can be built directly, loaded from a YAML file, or
read from ``GITROWS_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from gitrows.errors import ConfigError
from gitrows.utils.giturl import mirror_path, parse_remote_url

DEFAULT_BRANCH = "master"
DEFAULT_VOLUME = "gitrows-data"
DEFAULT_HISTORY_DEPTH = 1

ENV_PREFIX = "GITROWS_"

# Environment variable suffix -> config field
_ENV_FIELDS = {
    "REMOTE_URL": "remote_url",
    "BRANCH": "branch",
    "VOLUME": "volume",
    "HISTORY_DEPTH": "history_depth",
    "SSH_KEY": "ssh_key_path",
    "AUTHOR_NAME": "author_name",
    "AUTHOR_EMAIL": "author_email",
}


@dataclass
class GitRowsConfig:
    """Settings for one remote branch exposed as a key-value store."""

    remote_url: str = ""
    branch: str = DEFAULT_BRANCH
    volume: str = DEFAULT_VOLUME
    history_depth: int = DEFAULT_HISTORY_DEPTH  # Commits retained by clone/fetch
    ssh_key_path: str = ""
    author_name: str = "gitrows"
    author_email: str = "gitrows@localhost"

    def validate(self) -> GitRowsConfig:
        """Check the settings and return a copy with the remote URL normalized."""
        try:
            remote = parse_remote_url(self.remote_url)
            mirror_path(self.volume, remote)
        except ValueError as e:
            raise ConfigError(str(e), step="config") from e

        branch = self.branch.strip()
        if not branch or branch.startswith("refs/") or " " in branch:
            raise ConfigError(f"invalid branch name {self.branch!r}", step="config")

        try:
            depth = int(self.history_depth)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"history_depth must be an integer, got {self.history_depth!r}", step="config"
            ) from e
        if depth < 1:
            raise ConfigError("history_depth must be at least 1", step="config")

        if self.ssh_key_path and not Path(self.ssh_key_path).expanduser().is_file():
            raise ConfigError(f"ssh key not found: {self.ssh_key_path}", step="config")

        return replace(self, remote_url=remote, branch=branch, history_depth=depth)

    @property
    def mirror_path(self) -> Path:
        """Local mirror directory: ``<volume>/<host>/<path>``."""
        return mirror_path(self.volume, parse_remote_url(self.remote_url))


def load_config(path: str | Path) -> GitRowsConfig:
    """Load configuration from a YAML file.

    The settings may sit at the top level or under a ``gitrows:`` key.
    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {path}: {e}", step="config") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping", step="config")
    if isinstance(data.get("gitrows"), dict):
        data = data["gitrows"]

    known = {f.name for f in fields(GitRowsConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}", step="config")

    return GitRowsConfig(**data)


def config_from_env(
    environ: dict[str, str] | None = None,
    base: GitRowsConfig | None = None,
) -> GitRowsConfig:
    """Overlay ``GITROWS_*`` environment variables onto *base* (or defaults)."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            overrides[field_name] = value
    return replace(base or GitRowsConfig(), **overrides)
