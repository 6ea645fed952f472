"""Tests for remote address parsing and mirror path derivation."""

from pathlib import Path

import pytest

from gitrows.utils.giturl import mirror_path, parse_remote_url


def test_scp_syntax_becomes_ssh_url():
    assert (
        parse_remote_url("git@github.com:yusufsyaifudin/common-dev-config.git")
        == "ssh://git@github.com/yusufsyaifudin/common-dev-config.git"
    )


def test_ssh_url_unchanged():
    url = "ssh://git@github.com/yusufsyaifudin/common-dev-config.git"
    assert parse_remote_url(url) == url


def test_https_url_unchanged():
    url = "https://gitlab.example.com/team/data.git"
    assert parse_remote_url(url) == url


def test_local_path_becomes_file_url(tmp_path):
    url = parse_remote_url(str(tmp_path / "remote.git"))
    assert url.startswith("file://")
    assert url.endswith("/remote.git")


@pytest.mark.parametrize("value", ["", "   ", "ftp://example.com/repo.git", "not a url"])
def test_unsupported_addresses_rejected(value):
    with pytest.raises(ValueError):
        parse_remote_url(value)


def test_mirror_path_per_host_and_path():
    path = mirror_path("/data", "ssh://git@github.com/owner/repo.git")
    assert path == Path("/data/github.com/owner/repo.git")


def test_mirror_path_keeps_port():
    path = mirror_path("vol", "ssh://git@git.internal:2222/team/repo.git")
    assert path == Path("vol/git.internal:2222/team/repo.git")


def test_mirror_path_for_local_remote():
    path = mirror_path("vol", "file:///srv/git/repo.git")
    assert path == Path("vol/local/srv/git/repo.git")


@pytest.mark.parametrize(
    "url",
    ["ssh://git@host/../../etc/x.git", "ssh://git@host/team/../../x.git", "https://host/a/..//b.git"],
)
def test_mirror_path_rejects_parent_segments(url):
    with pytest.raises(ValueError):
        mirror_path("vol", url)
