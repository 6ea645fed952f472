"""Exception taxonomy for gitrows.

Every error raised by the store derives from :class:`GitRowsError`. Errors
carry the name of the step that failed (``fetch``, ``push``, ``write`` ...)
and, once they leave the public facade, the operation that was running
(``get``, ``create``, ``upsert``, ``delete``, ``list``).
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator


class GitRowsError(Exception):
    """Base class for all gitrows failures."""

    def __init__(self, message: str, *, step: str = "", operation: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.operation = operation

    def __str__(self) -> str:
        parts = [p for p in (self.operation, self.step) if p]
        parts.append(self.message)
        return ": ".join(parts)


class ConfigError(GitRowsError):
    """Invalid or incomplete configuration."""


class SyncError(GitRowsError):
    """Clone, fetch or checkout against the remote failed."""


class PreconditionError(GitRowsError):
    """The requested mutation does not apply to the current tree."""


class InvalidKeyError(PreconditionError):
    """The key is empty, escapes the mirror, or addresses git internals."""


class KeyExistsError(PreconditionError):
    """Create was asked to write a key that already exists."""


class KeyIsDirectoryError(PreconditionError):
    """The key names a directory, not a record."""


class KeyNotFoundError(PreconditionError):
    """The key does not exist at the current tip."""


class RecordWriteError(GitRowsError):
    """Writing, removing or staging a record failed."""


class LockError(GitRowsError):
    """An advisory file lock could not be acquired or released."""


class CommitError(GitRowsError):
    """Creating the revision failed."""


class PublishError(GitRowsError):
    """Pushing the branch to the remote failed."""


class PublishConflictError(PublishError):
    """The remote branch moved since the mirror was synchronized."""


class OperationCancelledError(GitRowsError):
    """The caller cancelled the operation before a remote step."""


@contextmanager
def operation_context(name: str) -> Iterator[None]:
    """Tag any :class:`GitRowsError` raised inside the block with *name*."""
    try:
        yield
    except GitRowsError as exc:
        if not exc.operation:
            exc.operation = name
        raise
