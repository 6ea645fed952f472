"""gitrows — a key-value store backed by a remote git branch.

Keys are repository-relative paths, values are file contents, and every
mutation is recorded as a commit and pushed to the remote.
"""

from gitrows.config import GitRowsConfig, config_from_env, load_config
from gitrows.db import GitRows
from gitrows.errors import (
    GitRowsError,
    KeyExistsError,
    KeyNotFoundError,
    PreconditionError,
    PublishConflictError,
    SyncError,
)
from gitrows.models import ListEntry, UpsertResult

__version__ = "0.1.0"

__all__ = [
    "GitRows",
    "GitRowsConfig",
    "GitRowsError",
    "KeyExistsError",
    "KeyNotFoundError",
    "ListEntry",
    "PreconditionError",
    "PublishConflictError",
    "SyncError",
    "UpsertResult",
    "config_from_env",
    "load_config",
]
