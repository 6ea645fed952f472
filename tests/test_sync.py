"""Tests for mirror synchronization against a bare remote on disk."""

import pytest
from git import Repo

from gitrows.cancel import CancelToken
from gitrows.errors import OperationCancelledError, SyncError
from gitrows.sync.synchronizer import SyncState


def test_sync_empty_remote(db):
    result = db.sync()
    assert result.state is SyncState.CHECKED_OUT
    assert result.tip is None
    assert result.remote_tip is None
    assert not result.has_revision
    assert result.repo.git.symbolic_ref("HEAD") == "refs/heads/master"


def working_tree(path):
    return {
        str(p.relative_to(path)): p.read_bytes()
        for p in sorted(path.rglob("*"))
        if p.is_file() and ".git" not in p.relative_to(path).parts
    }


def test_sync_is_idempotent(db):
    db.create("a.txt", b"1")
    sha = db.create("dir/b.txt", b"2")

    first = db.sync()
    first_tree = working_tree(db.handle.local_path)
    second = db.sync()

    assert first.tip == second.tip == sha
    assert second.remote_tip == sha
    assert working_tree(db.handle.local_path) == first_tree
    assert first_tree == {"a.txt": b"1", "dir/b.txt": b"2"}


def test_sync_clones_into_fresh_volume(db, make_db):
    sha = db.create("a.txt", b"1")
    other = make_db("other")
    result = other.sync()
    assert result.tip == sha
    assert (other.handle.local_path / "a.txt").read_bytes() == b"1"


def test_sync_discards_local_state(db):
    db.create("a.txt", b"1")
    sha = db.create("b.txt", b"2")
    repo = Repo(db.handle.local_path)
    workdir = db.handle.local_path

    (workdir / "a.txt").write_bytes(b"edited")
    (workdir / "stray.txt").write_bytes(b"junk")
    (workdir / "c.txt").write_bytes(b"unpushed")
    repo.git.add("c.txt")
    repo.git.commit("-m", "local only")

    result = db.sync()
    assert result.tip == sha
    assert (workdir / "a.txt").read_bytes() == b"1"
    assert not (workdir / "stray.txt").exists()
    assert not (workdir / "c.txt").exists()
    assert repo.git.status("--porcelain") == ""


def test_sync_follows_remote_advances(db, make_db):
    db.create("a.txt", b"1")
    other = make_db("other")
    other.sync()
    sha = db.upsert("a.txt", b"2").commit
    assert other.sync().tip == sha
    assert other.get("a.txt") == b"2"


def test_missing_branch_starts_orphan(db, make_db, remote_log):
    seed = db.create("a.txt", b"1")
    data = make_db("data", branch="data")

    result = data.sync()
    assert result.tip is None
    assert data.list() == []

    sha = data.create("b.txt", b"2")
    assert [c.hexsha for c in remote_log("data")] == [sha]
    assert remote_log("data")[0].parents == ()
    assert remote_log("master")[0].hexsha == seed


def test_cancelled_before_remote_call(db):
    token = CancelToken()
    token.cancel()
    with pytest.raises(OperationCancelledError) as excinfo:
        db.sync(cancel=token)
    assert excinfo.value.step == "ls-remote"
    assert not db.handle.mirror_exists()


def test_expired_deadline_cancels(db):
    with pytest.raises(OperationCancelledError):
        db.get("a.txt", cancel=CancelToken(timeout=0))


def test_unreachable_remote(make_db, tmp_path):
    db = make_db(remote_url=str(tmp_path / "nowhere.git"))
    with pytest.raises(SyncError) as excinfo:
        db.sync()
    assert excinfo.value.step == "ls-remote"
    assert excinfo.value.operation == "sync"


def test_remote_url_change_relinks_mirror(db):
    sha = db.create("a.txt", b"1")
    repo = Repo(db.handle.local_path)
    repo.remote("origin").set_url("file:///nonexistent/elsewhere.git")
    assert db.sync().tip == sha
    assert list(repo.remote("origin").urls) == [db.handle.remote_url]
