"""Git operations — repository handles, remote listing, command wrappers."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.cmd import Git

from gitrows.config import GitRowsConfig
from gitrows.errors import GitRowsError, SyncError

logger = logging.getLogger(__name__)

REMOTE_NAME = "origin"

# Highest-precedence attributes: stored bytes must equal the blob bytes.
RAW_CONTENT_ATTRIBUTES = "* -text -eol -filter -ident -working-tree-encoding\n"


@dataclass
class RepoHandle:
    """One remote branch and the local mirror that tracks it.

    The mirror path is derived once from the volume and the remote address,
    so every remote gets its own directory and no global state is needed.
    """

    remote_url: str
    """Normalized remote address (``ssh://``, ``https://``, ``file://`` ...)."""

    branch: str
    """Branch used as the key-value table."""

    local_path: Path
    """Mirror working tree: ``<volume>/<host>/<path>``."""

    history_depth: int = 1
    """Number of commits retained by clone and fetch."""

    ssh_key_path: str = ""
    """Private key used for SSH remotes, empty for the agent/default key."""

    author_name: str = "gitrows"
    author_email: str = "gitrows@localhost"

    _env: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.local_path = Path(self.local_path)
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self.ssh_key_path:
            key = shlex.quote(str(Path(self.ssh_key_path).expanduser()))
            env["GIT_SSH_COMMAND"] = f"ssh -i {key} -o IdentitiesOnly=yes"
        self._env = env

    @classmethod
    def from_config(cls, config: GitRowsConfig) -> RepoHandle:
        config = config.validate()
        return cls(
            remote_url=config.remote_url,
            branch=config.branch,
            local_path=config.mirror_path,
            history_depth=config.history_depth,
            ssh_key_path=config.ssh_key_path,
            author_name=config.author_name,
            author_email=config.author_email,
        )

    @property
    def branch_ref(self) -> str:
        return f"refs/heads/{self.branch}"

    @property
    def git_env(self) -> dict[str, str]:
        """Environment applied to every git command run for this handle."""
        return dict(self._env)

    def mirror_exists(self) -> bool:
        return (self.local_path / ".git").exists()

    def open(self) -> Repo:
        """Open the existing mirror with this handle's git environment."""
        try:
            repo = Repo(self.local_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise SyncError(f"{self.local_path} is not a git mirror: {e}", step="open") from e
        repo.git.update_environment(**self._env)
        return repo


def describe(exc: GitCommandError) -> str:
    """Condense a GitCommandError to the git output that explains it."""
    text = " ".join(
        part.strip() for part in (exc.stderr, exc.stdout) if isinstance(part, str) and part.strip()
    )
    return text or str(exc)


def run_git(
    repo: Repo,
    *args: str,
    step: str,
    error: type[GitRowsError] = SyncError,
) -> str:
    """Run ``git <args>`` in the mirror and return stdout.

    A failing command is raised as *error* tagged with *step*.
    """
    logger.debug("git %s (cwd=%s)", " ".join(args), repo.working_tree_dir)
    try:
        return repo.git.execute(["git", *args])
    except GitCommandError as e:
        raise error(f"git {args[0]} failed: {describe(e)}", step=step) from e


def list_remote_heads(handle: RepoHandle) -> dict[str, str]:
    """Return ``{ref name: sha}`` for every branch on the remote.

    An empty dict means the remote repository has no branches at all.
    """
    g = Git()
    g.update_environment(**handle.git_env)
    logger.debug("git ls-remote --heads %s", handle.remote_url)
    try:
        output = g.execute(["git", "ls-remote", "--heads", handle.remote_url])
    except GitCommandError as e:
        raise SyncError(
            f"cannot list remote {handle.remote_url}: {describe(e)}", step="ls-remote"
        ) from e

    heads = {}
    for line in output.splitlines():
        sha, _, ref = line.partition("\t")
        if ref:
            heads[ref.strip()] = sha.strip()
    return heads


def configure_identity(repo: Repo, name: str, email: str) -> None:
    """Pin the committer identity in the mirror's local git config."""
    with repo.config_writer() as cw:
        cw.set_value("user", "name", name)
        cw.set_value("user", "email", email)
        cw.set_value("commit", "gpgsign", "false")


def read_shallow_boundary(repo: Repo) -> set[str]:
    """Commits whose parents were cut off by a shallow clone or fetch."""
    shallow_file = Path(repo.git_dir) / "shallow"
    if not shallow_file.exists():
        return set()
    return {line.strip() for line in shallow_file.read_text().splitlines() if line.strip()}


def disable_content_conversion(repo: Repo) -> None:
    """Turn off line-ending conversion and filters in the mirror.

    A ``.gitattributes`` committed to the branch would otherwise rewrite
    values on checkout and on ``git add``.
    """
    info = Path(repo.git_dir) / "info"
    try:
        info.mkdir(parents=True, exist_ok=True)
        (info / "attributes").write_text(RAW_CONTENT_ATTRIBUTES)
    except OSError as e:
        raise SyncError(f"cannot write {info / 'attributes'}: {e}", step="open") from e
    with repo.config_writer() as cw:
        cw.set_value("core", "autocrlf", "false")
