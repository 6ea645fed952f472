"""Key normalization — keys are relative POSIX paths inside the mirror."""

from __future__ import annotations

import posixpath

from gitrows.errors import InvalidKeyError

GIT_DIR = ".git"


def normalize_key(key: str) -> str:
    """Return the canonical form of *key*.

    Duplicate separators and ``.`` segments are collapsed and leading
    slashes stripped, so ``"/a//b/./c"`` and ``"a/b/c"`` are the same key.

    Raises:
        InvalidKeyError: If the key is empty, climbs out of the mirror with
            ``..``, or points into the ``.git`` directory.
    """
    if not isinstance(key, str):
        raise InvalidKeyError(f"key must be a string, got {type(key).__name__}", step="normalize")

    cleaned = posixpath.normpath(key).lstrip("/") if key else ""
    if cleaned in ("", "."):
        raise InvalidKeyError(f"empty key {key!r}", step="normalize")

    first = cleaned.split("/", 1)[0]
    if first == "..":
        raise InvalidKeyError(f"key {key!r} escapes the repository", step="normalize")
    if first == GIT_DIR:
        raise InvalidKeyError(f"key {key!r} addresses git internals", step="normalize")
    return cleaned


def normalize_prefix(prefix: str | None) -> str:
    """Normalize a List prefix; blank or root-like prefixes mean no filter."""
    if prefix is None:
        return ""
    prefix = prefix.strip()
    if not prefix:
        return ""
    cleaned = posixpath.normpath(prefix).strip("/")
    return "" if cleaned == "." else cleaned


def parent_dir(key: str) -> str:
    """Immediate parent directory of a normalized key (``""`` at the root)."""
    return posixpath.dirname(key)
