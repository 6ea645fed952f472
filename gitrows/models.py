"""Data models — operation options, list entries, upsert results."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, NamedTuple

DEFAULT_CREATE_MESSAGE = "gitrows: CREATE"
DEFAULT_UPSERT_MESSAGE = "gitrows: UPSERT"
DEFAULT_DELETE_MESSAGE = "gitrows: DELETE"


def commit_message(override: str | None, default: str) -> str:
    """Trimmed *override*, or *default* when it is missing or blank."""
    if override is None:
        return default
    override = override.strip()
    return override or default


@dataclass
class CreateOptions:
    message: str | None = None

    @property
    def commit_message(self) -> str:
        return commit_message(self.message, DEFAULT_CREATE_MESSAGE)


@dataclass
class UpsertOptions:
    message: str | None = None
    allow_empty_commit: bool = False  # Commit even when the tree is unchanged

    @property
    def commit_message(self) -> str:
        return commit_message(self.message, DEFAULT_UPSERT_MESSAGE)


@dataclass
class DeleteOptions:
    message: str | None = None

    @property
    def commit_message(self) -> str:
        return commit_message(self.message, DEFAULT_DELETE_MESSAGE)


@dataclass
class ListOptions:
    prefix: str = ""  # Exact parent directory; "" lists every key


class UpsertResult(NamedTuple):
    """Commit SHA after an upsert and whether the tree changed."""

    commit: str
    changed: bool


@dataclass
class ListEntry:
    """One key at the branch tip.

    Content is not loaded until :meth:`open` or :meth:`read` is called; each
    call reads the immutable blob again, so an entry can be read any number
    of times.
    """

    key: str
    last_commit: str
    size: int = 0
    _reader: Callable[[], bytes] = field(default=lambda: b"", repr=False, compare=False)

    def open(self) -> BinaryIO:
        """Return a fresh binary stream over the record's content."""
        return io.BytesIO(self._reader())

    def read(self) -> bytes:
        return self._reader()
