"""Tests for git ref validation."""

import pytest

from threadlines.git.refs import is_commit_sha, validate_git_ref


@pytest.mark.parametrize(
    "ref",
    ["main", "origin/main", "feature/add-login", "v1.2.3", "HEAD~1", "HEAD^", "abc1234", "user@topic"],
)
def test_valid_refs_pass_through(ref):
    assert validate_git_ref(ref) == ref


@pytest.mark.parametrize(
    "ref, reason",
    [
        ("", "empty"),
        ("--upload-pack=evil", "option-style"),
        ("main..feature", "ranges"),
        ("main; rm -rf /", "invalid characters"),
        ("has space", "invalid characters"),
        ("feature/", "malformed"),
        ("branch.lock", "malformed"),
        ("a//b", "malformed"),
    ],
)
def test_invalid_refs_are_rejected(ref, reason):
    with pytest.raises(ValueError, match=reason):
        validate_git_ref(ref)


def test_is_commit_sha():
    assert is_commit_sha("a" * 40)
    assert is_commit_sha("DEADbeef")
    assert not is_commit_sha("main")
    assert not is_commit_sha("abc")
