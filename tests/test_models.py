"""Tests for operation options, list entries and error formatting."""

import pytest

from gitrows.errors import KeyExistsError, operation_context
from gitrows.models import (
    CreateOptions,
    DeleteOptions,
    ListEntry,
    UpsertOptions,
    UpsertResult,
    commit_message,
)


def test_commit_message_trimmed():
    assert commit_message("  my update \n", "default") == "my update"


def test_blank_commit_message_falls_back_to_default():
    assert commit_message("   ", "default") == "default"
    assert commit_message(None, "default") == "default"


def test_operation_default_messages():
    assert CreateOptions().commit_message == "gitrows: CREATE"
    assert UpsertOptions().commit_message == "gitrows: UPSERT"
    assert DeleteOptions(message="").commit_message == "gitrows: DELETE"
    assert UpsertOptions().allow_empty_commit is False


def test_upsert_result_unpacks():
    sha, changed = UpsertResult("abc", True)
    assert sha == "abc"
    assert changed


def test_list_entry_streams_are_fresh():
    calls = []

    def reader():
        calls.append(1)
        return b"payload"

    entry = ListEntry(key="a.txt", last_commit="abc", _reader=reader)
    first = entry.open()
    assert first.read() == b"payload"
    assert entry.open().read() == b"payload"
    assert entry.read() == b"payload"
    assert len(calls) == 3


def test_error_renders_operation_and_step():
    with pytest.raises(KeyExistsError) as excinfo:
        with operation_context("create"):
            raise KeyExistsError("key exists", step="write")
    assert excinfo.value.operation == "create"
    assert str(excinfo.value) == "create: write: key exists"


def test_operation_context_keeps_innermost_operation():
    with pytest.raises(KeyExistsError) as excinfo:
        with operation_context("outer"):
            with operation_context("inner"):
                raise KeyExistsError("boom")
    assert excinfo.value.operation == "inner"
