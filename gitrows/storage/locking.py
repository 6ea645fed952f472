"""Advisory file locks held while a single record is read or written.

The locks only serialize access to one file from within the host; they do
not make the commit/publish transaction safe across processes.
"""

from __future__ import annotations

import fcntl
import logging
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from gitrows.errors import LockError

logger = logging.getLogger(__name__)


@contextmanager
def exclusive_lock(fh: BinaryIO, key: str) -> Iterator[BinaryIO]:
    """Hold an exclusive ``flock`` on *fh* for the duration of the block."""
    try:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
    except OSError as e:
        raise LockError(f"cannot acquire file lock on key '{key}': {e}", step="lock") from e

    try:
        yield fh
    except BaseException:
        _release(fh, key, quiet=True)
        raise
    _release(fh, key)


def _release(fh: BinaryIO, key: str, quiet: bool = False) -> None:
    try:
        fh.flush()
        fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    except OSError as e:
        if quiet:
            # The body already failed; that error is the one to report.
            logger.warning("failed to unlock file '%s': %s", key, e)
            return
        raise LockError(f"failed to unlock file '{key}': {e}", step="unlock") from e
