"""Transaction committer — synchronize, stage, commit and publish one change.

Create, Upsert and Delete each run as a single unit::

    sync -> write/remove -> commit -> push

The push is a forced, atomic ref update guarded by a lease on the tip seen
during synchronization: if another writer published in between, the push is
rejected with :class:`PublishConflictError` and the local branch is rolled
back. Nothing is retried here; the caller re-runs the whole operation.
"""

from __future__ import annotations

import logging

from git import GitCommandError, Repo

from gitrows.cancel import CancelToken, check
from gitrows.errors import CommitError, GitRowsError, PublishConflictError, PublishError
from gitrows.models import CreateOptions, DeleteOptions, UpsertOptions, UpsertResult
from gitrows.storage.records import RecordWriter, WriteMode
from gitrows.sync.synchronizer import SyncResult, Synchronizer
from gitrows.utils.git_ops import REMOTE_NAME, describe, run_git

logger = logging.getLogger(__name__)

# Push output that means the remote branch moved under us.
_REJECTION_MARKERS = ("[rejected]", "stale info", "fetch first", "non-fast-forward")


class TransactionCommitter:
    """Runs Create/Upsert/Delete against one handle's mirror and remote."""

    def __init__(self, synchronizer: Synchronizer):
        self.synchronizer = synchronizer
        self.handle = synchronizer.handle

    # -- Operations -----------------------------------------------------------

    def create(
        self,
        key: str,
        data: bytes,
        options: CreateOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """Add a new key. Returns the SHA of the published commit."""
        options = options or CreateOptions()
        state = self.synchronizer.run(cancel)
        RecordWriter(state.repo).write(key, data, WriteMode.CREATE)
        return self._commit_and_publish(state, options.commit_message, False, cancel)

    def upsert(
        self,
        key: str,
        data: bytes,
        options: UpsertOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> UpsertResult:
        """Create or overwrite a key.

        When the content is identical to the tip and empty commits are not
        allowed, nothing is committed or pushed and the current tip is
        returned with ``changed=False``.
        """
        options = options or UpsertOptions()
        state = self.synchronizer.run(cancel)
        RecordWriter(state.repo).write(key, data, WriteMode.UPSERT)

        changed = self.has_changes(state.repo)
        if not changed and not options.allow_empty_commit:
            logger.info("Upsert of %s changed nothing; tip stays at %s", key, state.tip)
            return UpsertResult(state.tip or "", False)

        sha = self._commit_and_publish(
            state, options.commit_message, options.allow_empty_commit, cancel
        )
        return UpsertResult(sha, changed)

    def delete(
        self,
        key: str,
        options: DeleteOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> str:
        """Remove a key. Returns the SHA of the published commit."""
        options = options or DeleteOptions()
        state = self.synchronizer.run(cancel)
        RecordWriter(state.repo).remove(key)
        return self._commit_and_publish(state, options.commit_message, False, cancel)

    # -- Steps ----------------------------------------------------------------

    def has_changes(self, repo: Repo) -> bool:
        """True when the index or working tree differs from the tip."""
        return run_git(repo, "status", "--porcelain", step="status").strip() != ""

    def commit(self, repo: Repo, message: str, allow_empty: bool = False) -> str:
        """Commit the staged changes and return the new SHA."""
        args = ["commit", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        run_git(repo, *args, step="commit", error=CommitError)
        sha = repo.head.commit.hexsha
        logger.debug("Committed %s: %s", sha[:12], message)
        return sha

    def publish(self, state: SyncResult, cancel: CancelToken | None = None) -> None:
        """Push the local branch, provided the remote still has ``state.remote_tip``.

        Raises:
            PublishConflictError: The remote branch advanced (or was created)
                since synchronization.
            PublishError: Any other push failure.
        """
        check(cancel, "push")
        ref = self.handle.branch_ref
        lease = f"--force-with-lease={ref}:{state.remote_tip or ''}"
        args = ["git", "push", "--atomic", lease, REMOTE_NAME, f"{ref}:{ref}"]
        logger.debug("%s (cwd=%s)", " ".join(args), state.repo.working_tree_dir)
        try:
            state.repo.git.execute(args)
        except GitCommandError as e:
            detail = describe(e)
            if any(marker in detail for marker in _REJECTION_MARKERS):
                raise PublishConflictError(
                    f"remote branch {self.handle.branch} advanced since synchronization: {detail}",
                    step="push",
                ) from e
            raise PublishError(f"cannot `git push -f {ref}:{ref}`: {detail}", step="push") from e

        logger.info("Published %s to %s@%s",
                    state.repo.head.commit.hexsha[:12], self.handle.remote_url, self.handle.branch)

    def rollback(self, state: SyncResult) -> None:
        """Move the local branch back to the synchronized tip."""
        repo = state.repo
        if state.tip:
            run_git(repo, "reset", "--hard", state.tip, step="rollback")
        elif self.handle.branch_ref in [h.path for h in repo.heads]:
            run_git(repo, "update-ref", "-d", self.handle.branch_ref, step="rollback")
        logger.info("Rolled back %s to %s", self.handle.branch, state.tip or "(no commits)")

    def _commit_and_publish(
        self,
        state: SyncResult,
        message: str,
        allow_empty: bool,
        cancel: CancelToken | None,
    ) -> str:
        try:
            sha = self.commit(state.repo, message, allow_empty)
            self.publish(state, cancel)
        except GitRowsError:
            try:
                self.rollback(state)
            except GitRowsError as rollback_error:
                logger.warning("Rollback after failed publish failed: %s", rollback_error)
            raise
        return sha
