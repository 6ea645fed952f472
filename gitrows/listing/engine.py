"""List engine — every key at the branch tip, with its last commit.

This is the ``git ls-tree -r <branch>`` of the store. Because the mirror is
shallow, ``last_commit`` is only exact for keys changed inside the retained
history; other keys report the tip commit. Raise ``history_depth`` when
exact attribution matters.
"""

from __future__ import annotations

import logging
from typing import Callable

from git import Blob

from gitrows.cancel import CancelToken
from gitrows.listing.commit_graph import CommitGraphIndex
from gitrows.models import ListEntry, ListOptions
from gitrows.sync.synchronizer import Synchronizer
from gitrows.utils.keys import normalize_prefix, parent_dir

logger = logging.getLogger(__name__)


def _blob_reader(blob: Blob) -> Callable[[], bytes]:
    def read() -> bytes:
        return blob.data_stream.read()

    return read


class ListEngine:
    """Enumerates keys for one handle; reuses the commit index while the tip is unchanged."""

    def __init__(self, synchronizer: Synchronizer):
        self.synchronizer = synchronizer
        self._index: CommitGraphIndex | None = None

    def list(
        self,
        options: ListOptions | None = None,
        cancel: CancelToken | None = None,
    ) -> list[ListEntry]:
        """Synchronize, then list keys in tree order.

        ``options.prefix`` keeps only keys whose *immediate* parent directory
        equals the prefix: ``"a/b"`` matches ``a/b/x`` but not ``a/b/c/x``.
        An empty prefix lists everything.
        """
        options = options or ListOptions()
        prefix = normalize_prefix(options.prefix)

        state = self.synchronizer.run(cancel)
        if not state.has_revision:
            logger.info("Branch %s has no commits yet; nothing to list",
                        self.synchronizer.handle.branch)
            return []

        repo = state.repo
        tip = repo.commit(state.tip)
        blobs = [
            item
            for item in tip.tree.traverse(branch_first=False)
            if item.type == "blob" and (not prefix or parent_dir(item.path) == prefix)
        ]

        index = self._index_for(state.repo, state.tip)
        last_commits = index.last_commits_for_paths([b.path for b in blobs])

        entries = []
        for blob in blobs:
            last = last_commits.get(blob.path)
            entries.append(
                ListEntry(
                    key=blob.path,
                    last_commit=last.hexsha if last is not None else tip.hexsha,
                    size=blob.size,
                    _reader=_blob_reader(blob),
                )
            )
        return entries

    def _index_for(self, repo, tip: str) -> CommitGraphIndex:
        if self._index is None or self._index.tip != tip:
            self._index = CommitGraphIndex(repo, tip)
        return self._index
