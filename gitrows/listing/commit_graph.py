"""Commit-graph index over the history retained in a shallow mirror.

Finding the commit that last touched a path is a reachability question over
the whole commit graph, but a shallow mirror only holds the most recent
commits. The index walks what is retained and treats the shallow boundary
as opaque: a boundary commit's parents are missing, so it cannot be told
apart from an unchanged ancestor and is never credited with a change.
Paths that stay unresolved are reported by the caller as last modified at
the tip. Fetching deeper history makes the answer exact.
"""

from __future__ import annotations

import logging

from git import Commit, Repo

from gitrows.utils.git_ops import read_shallow_boundary

logger = logging.getLogger(__name__)


class CommitGraphIndex:
    """Retained commits reachable from ``tip``, newest first in topological order."""

    def __init__(self, repo: Repo, tip: str):
        self.tip = tip
        self.boundary = read_shallow_boundary(repo)
        self.commits: list[Commit] = list(repo.iter_commits(tip, topo_order=True))
        self._entries: dict[tuple[str, str], str | None] = {}
        logger.debug(
            "Indexed %d commits from %s (%d at the shallow boundary)",
            len(self.commits), tip[:12], len(self.boundary),
        )

    def retained_parents(self, commit: Commit) -> list[Commit] | None:
        """Parents available locally; ``None`` when the commit is a shallow boundary."""
        parents = list(commit.parents)
        # A root commit has nothing cut off even if listed as shallow.
        if parents and commit.hexsha in self.boundary:
            return None
        return parents

    def last_commits_for_paths(self, paths: list[str]) -> dict[str, Commit]:
        """Resolve the closest commit that changed each path.

        A commit changed a path when its entry at that path differs from the
        entry in every retained parent; a root commit introduced everything
        it contains. Paths with no such commit in the retained window are
        left out of the result.
        """
        remaining = set(paths)
        found: dict[str, Commit] = {}

        for commit in self.commits:
            if not remaining:
                break
            parents = self.retained_parents(commit)
            if parents is None:
                continue

            for path in list(remaining):
                entry = self._entry(commit, path)
                if entry is None:
                    continue
                if all(self._entry(parent, path) != entry for parent in parents):
                    found[path] = commit
                    remaining.discard(path)

        if remaining:
            logger.debug("%d path(s) unresolved within retained history", len(remaining))
        return found

    def last_differing_ancestor(self, path: str) -> str | None:
        """SHA of the closest commit that changed *path*, or None if not retained."""
        commit = self.last_commits_for_paths([path]).get(path)
        return commit.hexsha if commit else None

    def _entry(self, commit: Commit, path: str) -> str | None:
        cache_key = (commit.hexsha, path)
        if cache_key not in self._entries:
            try:
                self._entries[cache_key] = (commit.tree / path).hexsha
            except KeyError:
                self._entries[cache_key] = None
        return self._entries[cache_key]
