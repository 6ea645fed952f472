"""Synchronizer — converge the local mirror to the remote branch tip.

The mirror moves through four states on every run::

    Absent -> Mirrored -> RemoteLinked -> Fetched -> CheckedOut

Local edits and unpushed commits are discarded; after a successful run the
local branch equals the remote tip and the working tree is exactly that
tip's tree. History is fetched at a bounded depth so the mirror only holds
the most recent commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from git import GitCommandError, Repo

from gitrows.cancel import CancelToken, check
from gitrows.errors import SyncError
from gitrows.utils.git_ops import (
    REMOTE_NAME,
    RepoHandle,
    configure_identity,
    describe,
    disable_content_conversion,
    list_remote_heads,
    run_git,
)

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """How far a synchronization run got."""

    ABSENT = "absent"
    MIRRORED = "mirrored"
    REMOTE_LINKED = "remote_linked"
    FETCHED = "fetched"
    CHECKED_OUT = "checked_out"


@dataclass
class SyncResult:
    """A converged mirror, ready for reads and staged writes."""

    repo: Repo
    state: SyncState
    tip: str | None = None
    """Local branch SHA, or None while the branch has no commit yet."""

    remote_tip: str | None = None
    """Remote branch SHA as fetched, or None if the remote lacks the branch; the publish lease."""

    @property
    def has_revision(self) -> bool:
        return self.tip is not None


class Synchronizer:
    """Keeps one :class:`RepoHandle`'s mirror convergent with its remote."""

    def __init__(self, handle: RepoHandle):
        self.handle = handle
        self._repo: Repo | None = None

    def run(self, cancel: CancelToken | None = None) -> SyncResult:
        """Converge the mirror and return it.

        Raises:
            SyncError: If listing, cloning, fetching or checking out fails.
                The mirror must not be trusted until the next successful run.
            OperationCancelledError: If *cancel* fires before a remote step.
        """
        check(cancel, "ls-remote")
        heads = list_remote_heads(self.handle)
        remote_tip = heads.get(self.handle.branch_ref)

        repo = self._mirror(heads, remote_tip, cancel)
        self._advance(SyncState.MIRRORED)

        self._link_remote(repo)
        self._advance(SyncState.REMOTE_LINKED)

        self._fetch(repo, remote_tip, cancel)
        self._advance(SyncState.FETCHED)

        tip = self._checkout(repo)
        state = self._advance(SyncState.CHECKED_OUT)

        logger.info(
            "Synchronized %s@%s -> %s",
            self.handle.remote_url,
            self.handle.branch,
            tip[:12] if tip else "(no commits yet)",
        )
        # The fetched tip may be newer than what ls-remote advertised.
        remote_tip = tip if remote_tip is not None else None
        return SyncResult(repo=repo, state=state, tip=tip, remote_tip=remote_tip)

    def _advance(self, state: SyncState) -> SyncState:
        logger.debug("mirror %s: %s", self.handle.local_path, state.value)
        return state

    # -- Absent -> Mirrored ---------------------------------------------------

    def _mirror(
        self,
        heads: dict[str, str],
        remote_tip: str | None,
        cancel: CancelToken | None,
    ) -> Repo:
        if self._repo is not None and self.handle.mirror_exists():
            return self._repo

        if self.handle.mirror_exists():
            repo = self.handle.open()
        elif remote_tip is None:
            repo = self._init(empty_remote=not heads)
        else:
            repo = self._clone(cancel)

        configure_identity(repo, self.handle.author_name, self.handle.author_email)
        disable_content_conversion(repo)
        self._repo = repo
        return repo

    def _clone(self, cancel: CancelToken | None) -> Repo:
        check(cancel, "clone")
        target = self.handle.local_path
        logger.info("Cloning %s (branch %s, depth %d) into %s",
                    self.handle.remote_url, self.handle.branch, self.handle.history_depth, target)
        try:
            repo = Repo.clone_from(
                self.handle.remote_url,
                str(target),
                env=self.handle.git_env,
                origin=REMOTE_NAME,
                branch=self.handle.branch,
                depth=self.handle.history_depth,
                single_branch=True,
                no_checkout=True,
            )
        except GitCommandError as e:
            if self.handle.mirror_exists():
                # Another clone of the same remote won the race; reuse it.
                logger.info("Mirror %s already exists", target)
                return self.handle.open()
            raise SyncError(
                f"clone repository {self.handle.remote_url} error: {describe(e)}", step="clone"
            ) from e

        repo.git.update_environment(**self.handle.git_env)
        return repo

    def _init(self, empty_remote: bool) -> Repo:
        reason = "remote is empty" if empty_remote else f"remote has no branch {self.handle.branch}"
        logger.info("Initializing empty mirror at %s (%s)", self.handle.local_path, reason)
        try:
            repo = Repo.init(self.handle.local_path, mkdir=True)
        except (GitCommandError, OSError) as e:
            raise SyncError(
                f"cannot init repository at {self.handle.local_path}: {e}", step="init"
            ) from e
        repo.git.update_environment(**self.handle.git_env)
        return repo

    # -- Mirrored -> RemoteLinked ---------------------------------------------

    def _link_remote(self, repo: Repo) -> None:
        url = self.handle.remote_url
        try:
            if REMOTE_NAME in [r.name for r in repo.remotes]:
                remote = repo.remote(REMOTE_NAME)
                if list(remote.urls) != [url]:
                    logger.info("Re-pointing remote %s at %s", REMOTE_NAME, url)
                    remote.set_url(url)
            else:
                repo.create_remote(REMOTE_NAME, url)
        except GitCommandError as e:
            raise SyncError(
                f"cannot `git remote add {REMOTE_NAME} {url}`: {describe(e)}", step="remote"
            ) from e

    # -- RemoteLinked -> Fetched ----------------------------------------------

    def _fetch(self, repo: Repo, remote_tip: str | None, cancel: CancelToken | None) -> None:
        branch_ref = self.handle.branch_ref

        if remote_tip is None:
            # Orphan state: HEAD names the branch, the first commit creates it.
            run_git(repo, "symbolic-ref", "HEAD", branch_ref, step="fetch")
            if branch_ref in [h.path for h in repo.heads]:
                run_git(repo, "update-ref", "-d", branch_ref, step="fetch")
            run_git(repo, "read-tree", "--empty", step="fetch")
            run_git(repo, "clean", "-fdx", step="fetch")
            return

        check(cancel, "fetch")
        run_git(
            repo,
            "fetch",
            "--update-head-ok",
            f"--depth={self.handle.history_depth}",
            REMOTE_NAME,
            f"+{branch_ref}:{branch_ref}",
            step="fetch",
        )

    # -- Fetched -> CheckedOut ------------------------------------------------

    def _checkout(self, repo: Repo) -> str | None:
        if repo.head.is_valid():
            run_git(repo, "reset", "--hard", step="checkout")

        branch_ref = self.handle.branch_ref
        if branch_ref not in [h.path for h in repo.heads]:
            return None

        run_git(repo, "checkout", "--force", self.handle.branch, step="checkout")
        run_git(repo, "clean", "-fdx", step="checkout")
        return repo.head.commit.hexsha
