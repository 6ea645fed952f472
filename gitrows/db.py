"""GitRows — the public key-value API over one remote branch.

Usage::

    db = GitRows(GitRowsConfig(remote_url="git@github.com:owner/data.git"))
    sha = db.create("notes/today.md", b"hello")
    sha, changed = db.upsert("notes/today.md", b"hello again")
    for entry in db.list(prefix="notes"):
        print(entry.key, entry.last_commit, entry.read())

Every call first synchronizes the local mirror with the remote. A handle may
be reused for any number of sequential calls but is not safe for concurrent
use; writers in different processes need a shared lock passed as
``mutation_lock`` (any context manager), held around each mutation.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext

from gitrows.cancel import CancelToken
from gitrows.config import GitRowsConfig
from gitrows.errors import operation_context
from gitrows.listing.engine import ListEngine
from gitrows.models import (
    CreateOptions,
    DeleteOptions,
    ListEntry,
    ListOptions,
    UpsertOptions,
    UpsertResult,
)
from gitrows.storage.records import read_record
from gitrows.sync.synchronizer import SyncResult, Synchronizer
from gitrows.transaction.committer import TransactionCommitter
from gitrows.utils.git_ops import RepoHandle
from gitrows.utils.keys import normalize_key

logger = logging.getLogger(__name__)


class GitRows:
    """Key-value store backed by a git branch.

    Parameters
    ----------
    config : GitRowsConfig
        Remote, branch, mirror volume and history depth.
    mutation_lock : AbstractContextManager | None
        Lock held around every Create/Upsert/Delete. gitrows does no
        cross-process coordination of its own; pass a distributed lock here
        when several processes write the same branch.
    """

    def __init__(
        self,
        config: GitRowsConfig,
        mutation_lock: AbstractContextManager | None = None,
    ) -> None:
        self.handle = RepoHandle.from_config(config)
        self.synchronizer = Synchronizer(self.handle)
        self.committer = TransactionCommitter(self.synchronizer)
        self.lister = ListEngine(self.synchronizer)
        self._mutation_lock = mutation_lock

    def __repr__(self) -> str:
        return f"GitRows({self.handle.remote_url!r}, branch={self.handle.branch!r})"

    def sync(self, cancel: CancelToken | None = None) -> SyncResult:
        """Converge the mirror with the remote without reading or writing."""
        with operation_context("sync"):
            return self.synchronizer.run(cancel)

    def get(self, key: str, cancel: CancelToken | None = None) -> bytes:
        """Return the value stored at *key*.

        Raises:
            KeyNotFoundError: If the key does not exist at the tip.
        """
        with operation_context("get"):
            key = normalize_key(key)
            state = self.synchronizer.run(cancel)
            return read_record(state.repo, key)

    def create(
        self,
        key: str,
        data: bytes,
        message: str | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """Store a new key; fails with KeyExistsError if it already exists."""
        with operation_context("create"):
            key = normalize_key(key)
            with self._locked():
                return self.committer.create(key, data, CreateOptions(message=message), cancel)

    def upsert(
        self,
        key: str,
        data: bytes,
        message: str | None = None,
        allow_empty_commit: bool = False,
        cancel: CancelToken | None = None,
    ) -> UpsertResult:
        """Create or overwrite a key; returns ``(commit, changed)``."""
        with operation_context("upsert"):
            key = normalize_key(key)
            options = UpsertOptions(message=message, allow_empty_commit=allow_empty_commit)
            with self._locked():
                return self.committer.upsert(key, data, options, cancel)

    def delete(
        self,
        key: str,
        message: str | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """Remove a key; fails with KeyNotFoundError if it does not exist."""
        with operation_context("delete"):
            key = normalize_key(key)
            with self._locked():
                return self.committer.delete(key, DeleteOptions(message=message), cancel)

    def list(
        self,
        prefix: str | None = None,
        cancel: CancelToken | None = None,
    ) -> list[ListEntry]:
        """List keys at the tip, optionally only those directly under *prefix*."""
        with operation_context("list"):
            return self.lister.list(ListOptions(prefix=prefix or ""), cancel)

    def _locked(self) -> AbstractContextManager:
        return self._mutation_lock if self._mutation_lock is not None else nullcontext()
