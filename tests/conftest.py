"""Shared fixtures: bare remotes on disk and stores pointed at them."""

from pathlib import Path

import pytest
from git import Repo

from gitrows import GitRows, GitRowsConfig


@pytest.fixture
def remote(tmp_path) -> Path:
    """An empty bare repository standing in for the remote."""
    path = tmp_path / "remote.git"
    Repo.init(path, bare=True)
    return path


@pytest.fixture
def make_db(tmp_path, remote):
    """Build a store with its own mirror volume, so handles act like separate hosts."""

    def _make(name: str = "client", **overrides) -> GitRows:
        settings = {"remote_url": str(remote), "volume": str(tmp_path / name)}
        settings.update(overrides)
        return GitRows(GitRowsConfig(**settings))

    return _make


@pytest.fixture
def db(make_db) -> GitRows:
    return make_db()


@pytest.fixture
def remote_log(remote):
    """Return the remote branch history as a list of commits, newest first."""

    def _log(branch: str = "master"):
        repo = Repo(remote)
        if f"refs/heads/{branch}" not in [h.path for h in repo.heads]:
            return []
        return list(repo.iter_commits(branch))

    return _log
