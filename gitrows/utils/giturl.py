"""Remote address parsing and mirror path derivation.

Remote addresses come in three shapes: SCP-like SSH (``git@host:owner/repo``),
URLs with a git transport scheme, and local filesystem paths. They are all
normalized to URL form so a mirror directory can be derived from the host
and path.
"""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

# SCP-like addresses used by git for SSH access.
_SCP_SYNTAX_RE = re.compile(r"^([a-zA-Z0-9_]+)@([a-zA-Z0-9._-]+):(.*)$")

GIT_SCHEMES = ("git", "https", "http", "git+ssh", "ssh", "file")

LOCAL_HOST_DIR = "local"


def parse_remote_url(value: str) -> str:
    """Normalize a remote address to URL form.

    ``git@github.com:owner/repo.git`` becomes
    ``ssh://git@github.com/owner/repo.git`` and an absolute local path
    becomes a ``file://`` URL (so shallow clones work against it).

    Raises:
        ValueError: If the address is empty or uses an unsupported scheme.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("remote address is empty")

    m = _SCP_SYNTAX_RE.match(value)
    if m:
        user, host, path = m.groups()
        return f"ssh://{user}@{host}/{path.lstrip('/')}"

    if value.startswith(("/", "./", "../", "~")):
        return Path(value).expanduser().resolve().as_uri()

    parsed = urlparse(value)
    if parsed.scheme in GIT_SCHEMES:
        return value

    raise ValueError(f"unable to parse git remote address: {value}")


def mirror_path(volume: str | Path, remote_url: str) -> Path:
    """Return the local mirror directory for *remote_url* under *volume*.

    Each remote gets its own tree, e.g.
    ``ssh://git@github.com/owner/repo.git`` maps to
    ``<volume>/github.com/owner/repo.git``. Local ``file://`` remotes are
    placed under ``<volume>/local/``.

    Raises:
        ValueError: If the remote path contains a ``..`` segment.
    """
    parsed = urlparse(remote_url)
    host = parsed.hostname or LOCAL_HOST_DIR
    if parsed.port:
        host = f"{host}:{parsed.port}"
    path = parsed.path.strip("/")
    if ".." in path.split("/"):
        raise ValueError(f"remote path escapes the mirror volume: {remote_url}")
    return Path(volume) / host / path
