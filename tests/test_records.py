"""Tests for the record writer/reader on a plain working tree."""

from pathlib import Path

import pytest
from git import Repo

from gitrows.errors import (
    KeyExistsError,
    KeyIsDirectoryError,
    KeyNotFoundError,
    LockError,
    PreconditionError,
)
from gitrows.storage import locking
from gitrows.storage.locking import exclusive_lock
from gitrows.storage.records import RecordWriter, WriteMode, read_record
from gitrows.utils.git_ops import configure_identity


@pytest.fixture
def repo(tmp_path):
    repo = Repo.init(tmp_path / "work")
    configure_identity(repo, "tester", "tester@localhost")
    return repo


def staged(repo):
    return repo.git.diff("--cached", "--name-only").splitlines()


def test_create_writes_and_stages(repo):
    path = RecordWriter(repo).write("notes/a.txt", b"hello", WriteMode.CREATE)
    assert path.read_bytes() == b"hello"
    assert staged(repo) == ["notes/a.txt"]


def test_upsert_replaces_whole_content(repo):
    writer = RecordWriter(repo)
    writer.write("a.txt", b"a much longer first value", WriteMode.CREATE)
    writer.write("a.txt", b"short", WriteMode.UPSERT)
    assert read_record(repo, "a.txt") == b"short"


def test_create_existing_key_fails(repo):
    writer = RecordWriter(repo)
    writer.write("a.txt", b"one", WriteMode.CREATE)
    with pytest.raises(KeyExistsError) as excinfo:
        writer.write("a.txt", b"two", WriteMode.CREATE)
    assert excinfo.value.step == "write"
    assert read_record(repo, "a.txt") == b"one"


def test_upsert_on_directory_fails(repo):
    writer = RecordWriter(repo)
    writer.write("dir/a.txt", b"x", WriteMode.CREATE)
    with pytest.raises(KeyIsDirectoryError):
        writer.write("dir", b"y", WriteMode.UPSERT)


def test_create_on_directory_reports_existing_key(repo):
    writer = RecordWriter(repo)
    writer.write("dir/a.txt", b"x", WriteMode.CREATE)
    with pytest.raises(KeyExistsError):
        writer.write("dir", b"y", WriteMode.CREATE)


def test_record_under_record_fails(repo):
    writer = RecordWriter(repo)
    writer.write("a", b"x", WriteMode.CREATE)
    with pytest.raises(PreconditionError, match="parent path is a record"):
        writer.write("a/b", b"y", WriteMode.UPSERT)


def test_remove_stages_deletion(repo):
    writer = RecordWriter(repo)
    writer.write("a.txt", b"x", WriteMode.CREATE)
    repo.git.commit("-m", "seed")

    writer.remove("a.txt")
    assert not Path(repo.working_tree_dir, "a.txt").exists()
    assert repo.git.diff("--cached", "--name-status").split() == ["D", "a.txt"]


def test_remove_missing_key(repo):
    with pytest.raises(KeyNotFoundError) as excinfo:
        RecordWriter(repo).remove("absent.txt")
    assert excinfo.value.step == "remove"


def test_read_missing_and_directory(repo):
    RecordWriter(repo).write("dir/a.txt", b"x", WriteMode.CREATE)
    with pytest.raises(KeyNotFoundError):
        read_record(repo, "absent.txt")
    with pytest.raises(KeyNotFoundError):
        read_record(repo, "dir")


def test_exclusive_lock_yields_handle(tmp_path):
    path = tmp_path / "f"
    with open(path, "ab") as fh, exclusive_lock(fh, "f") as locked:
        locked.write(b"data")
    assert path.read_bytes() == b"data"


def test_failing_body_is_not_masked_by_unlock(tmp_path, monkeypatch):
    def flock(fd, op):
        if op == locking.fcntl.LOCK_UN:
            raise OSError("unlock failed")

    monkeypatch.setattr(locking.fcntl, "flock", flock)
    with open(tmp_path / "f", "ab") as fh:
        with pytest.raises(ValueError, match="body failed"):
            with exclusive_lock(fh, "f"):
                raise ValueError("body failed")

        with pytest.raises(LockError) as excinfo:
            with exclusive_lock(fh, "f"):
                pass
    assert excinfo.value.step == "unlock"
