"""Record reader and writer — one key's content in the mirror's working tree.

Writes replace the whole file (truncate, then write) under an exclusive
lock and stage the path with ``git add``. Nothing is committed here.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

from git import Repo

from gitrows.errors import (
    KeyExistsError,
    KeyIsDirectoryError,
    KeyNotFoundError,
    PreconditionError,
    RecordWriteError,
)
from gitrows.storage.locking import exclusive_lock
from gitrows.utils.git_ops import run_git

logger = logging.getLogger(__name__)


class WriteMode(Enum):
    CREATE = "create"  # Key must not exist yet
    UPSERT = "upsert"  # Key may exist, but not as a directory


def _record_path(repo: Repo, key: str) -> Path:
    return Path(repo.working_tree_dir) / key


def _pathspec(key: str) -> str:
    # Keys are file names, never globs.
    return f":(literal){key}"


def read_record(repo: Repo, key: str) -> bytes:
    """Return the bytes stored at *key* in the working tree.

    Raises:
        KeyNotFoundError: If the key is absent or names a directory.
    """
    path = _record_path(repo, key)
    if not path.is_file():
        raise KeyNotFoundError(f"key '{key}' not found", step="read")

    try:
        with open(path, "rb") as fh, exclusive_lock(fh, key):
            return fh.read()
    except FileNotFoundError as e:
        raise KeyNotFoundError(f"key '{key}' not found", step="read") from e


class RecordWriter:
    """Stages single-key changes against a synchronized mirror."""

    def __init__(self, repo: Repo):
        self.repo = repo

    def write(self, key: str, data: bytes, mode: WriteMode) -> Path:
        """Write *data* at *key* and stage it.

        Raises:
            KeyExistsError: ``CREATE`` on a key that already exists.
            KeyIsDirectoryError: ``UPSERT`` on a key that names a directory.
            RecordWriteError: The file could not be written or staged.
        """
        path = _record_path(self.repo, key)

        if mode is WriteMode.CREATE and (path.exists() or path.is_symlink()):
            raise KeyExistsError(f"cannot create '{key}' because the key exists", step="write")
        if mode is WriteMode.UPSERT and path.is_dir():
            raise KeyIsDirectoryError(f"cannot upsert '{key}' because it is a directory", step="write")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Append mode creates the file without truncating it before the
            # lock is held; the truncate below makes the write a full replace.
            with open(path, "ab") as fh, exclusive_lock(fh, key):
                fh.truncate(0)
                fh.write(data)
                os.fsync(fh.fileno())
        except (NotADirectoryError, FileExistsError) as e:
            raise PreconditionError(
                f"cannot write '{key}': a parent path is a record: {e}", step="write"
            ) from e
        except IsADirectoryError as e:
            raise KeyIsDirectoryError(f"cannot write '{key}': {e}", step="write") from e
        except OSError as e:
            raise RecordWriteError(f"cannot write '{key}': {e}", step="write") from e

        # --force: the branch may carry a .gitignore that matches the key.
        run_git(
            self.repo, "add", "--force", "--", _pathspec(key),
            step="stage", error=RecordWriteError,
        )
        logger.debug("Staged %s (%d bytes)", key, len(data))
        return path

    def remove(self, key: str) -> None:
        """Delete *key* from the working tree and stage the removal.

        Raises:
            KeyNotFoundError: If the key is absent or names a directory.
        """
        path = _record_path(self.repo, key)
        if not path.is_file():
            raise KeyNotFoundError(f"cannot delete '{key}': key not found", step="remove")

        try:
            path.unlink()
        except FileNotFoundError as e:
            raise KeyNotFoundError(f"cannot delete '{key}': key not found", step="remove") from e
        except OSError as e:
            raise RecordWriteError(f"cannot delete '{key}': {e}", step="remove") from e

        run_git(
            self.repo, "rm", "--cached", "--quiet", "--", _pathspec(key),
            step="stage", error=RecordWriteError,
        )
        logger.debug("Staged removal of %s", key)
