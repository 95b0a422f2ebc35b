from __future__ import annotations

from pathlib import Path

import pytest

from worldstack.core.exceptions import InvalidRepositoryUrlError
from worldstack.core.repository_url import (
    check_and_normalize_repository_url,
    file_url,
    file_url_to_path,
    is_absolute_url,
    is_valid_folder_name,
    try_normalize_repository_url,
)


@pytest.mark.parametrize(
    "url, expected, name",
    [
        ("https://GitHub.com/Org/Repo.git/", "https://github.com/Org/Repo", "Repo"),
        ("HTTPS://example.com/a/B.GIT", "https://example.com/a/B", "B"),
        ("  https://example.com/a/Lib/  ", "https://example.com/a/Lib", "Lib"),
        ("ssh://git@Host.Example.com/team/Core.git", "ssh://git@host.example.com/team/Core", "Core"),
        ("file:///tmp/stacks/My%20Repo", "file:///tmp/stacks/My%20Repo", "My Repo"),
    ],
)
def test_canonical_url_and_name(url: str, expected: str, name: str) -> None:
    result = check_and_normalize_repository_url(url)
    assert result.url == expected
    assert result.name == name


def test_canonical_url_is_idempotent() -> None:
    once = check_and_normalize_repository_url("https://Example.com/o/Repo.git").url
    assert check_and_normalize_repository_url(once).url == once


@pytest.mark.parametrize(
    "url",
    [
        "",
        "relative/path/Repo",
        "C:\\work\\Repo",
        "https://example.com/o/Repo?ref=main",
        "https://example.com/o/Repo#readme",
        "https://example.com/",
        "https://example.com/o/..",
    ],
)
def test_invalid_urls_are_rejected(url: str) -> None:
    with pytest.raises(InvalidRepositoryUrlError):
        check_and_normalize_repository_url(url)
    assert try_normalize_repository_url(url) is None


def test_invalid_url_error_is_a_value_error_with_context() -> None:
    with pytest.raises(ValueError) as exc_info:
        check_and_normalize_repository_url("not a url")
    assert exc_info.value.context == {"url": "not a url"}


@pytest.mark.parametrize("name", ["Repo", " Spaced Name ", "a.b-c_d", "Ünïcode"])
def test_valid_folder_names(name: str) -> None:
    assert is_valid_folder_name(name)


@pytest.mark.parametrize("name", [None, "", "   ", ".", "..", "a/b", "a\\b", "a:b", "a*b", "tab\there"])
def test_invalid_folder_names(name) -> None:
    assert not is_valid_folder_name(name)


def test_is_absolute_url() -> None:
    assert is_absolute_url("https://example.com/o/r")
    assert is_absolute_url("file:///tmp/x")
    assert not is_absolute_url("LocalRepo")
    assert not is_absolute_url("C:\\x")
    assert not is_absolute_url(None)


def test_file_url_round_trip(tmp_path: Path) -> None:
    url = file_url(tmp_path / "proxy" / "Repo")
    assert url.startswith("file:///")
    assert file_url_to_path(url) == (tmp_path / "proxy" / "Repo").absolute()
    assert file_url_to_path("https://example.com/o/Repo") is None
