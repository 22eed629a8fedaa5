"""Repository metadata helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from threadlines.errors import RepositoryStateError
from threadlines.git.runner import GitRunner

_SCP_REMOTE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")


def _stripped_output(runner: GitRunner, args: list[str]) -> Optional[str]:
    result = runner.run(args, check=False)
    if not result.ok:
        return None
    value = result.stdout.strip()
    return value if value else None


def find_repo_root(path: Path) -> Optional[Path]:
    """Top-level directory of the git work tree containing ``path``, if any."""
    try:
        root = _stripped_output(GitRunner(path), ["rev-parse", "--show-toplevel"])
    except RepositoryStateError:
        # git itself is unavailable
        return None
    return Path(root) if root else None


def get_repo_head_commit(runner: GitRunner) -> Optional[str]:
    """Get the current HEAD commit hash for a repo."""
    return _stripped_output(runner, ["rev-parse", "HEAD"])


def get_repo_branch(runner: GitRunner) -> Optional[str]:
    """Get the current branch name, or None on a detached HEAD."""
    branch = _stripped_output(runner, ["rev-parse", "--abbrev-ref", "HEAD"])
    return None if branch == "HEAD" else branch


def get_remote_url(runner: GitRunner, remote: str = "origin") -> Optional[str]:
    return _stripped_output(runner, ["remote", "get-url", remote])


def get_commit_message(runner: GitRunner, ref: str = "HEAD") -> Optional[str]:
    return _stripped_output(runner, ["log", "-1", "--format=%B", ref])


def get_commit_author(runner: GitRunner, ref: str = "HEAD") -> tuple[Optional[str], Optional[str]]:
    """Author name and email of ``ref``."""
    return (
        _stripped_output(runner, ["log", "-1", "--format=%an", ref]),
        _stripped_output(runner, ["log", "-1", "--format=%ae", ref]),
    )


def normalize_remote_url(url: Optional[str]) -> Optional[str]:
    """Turn a remote URL into a credential-free ``https://host/owner/repo`` form."""
    if not url:
        return None
    url = url.strip()
    scp = _SCP_REMOTE_RE.match(url)
    if scp and "://" not in url:
        url = f"https://{scp.group('host')}/{scp.group('path')}"
    url = re.sub(r"^(ssh|git)://(?:[^@/]+@)?", "https://", url)
    url = re.sub(r"^(https?://)[^@/]+@", r"\1", url)
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


@dataclass(frozen=True)
class RepositoryInfo:
    """Metadata sent alongside check results."""

    repo_name: Optional[str]
    branch_name: Optional[str]
    commit_sha: Optional[str]
    commit_message: Optional[str]
    author_name: Optional[str]
    author_email: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


def collect_repository_info(
    runner: GitRunner,
    *,
    remote: str = "origin",
    branch_name: Optional[str] = None,
    commit_ref: str = "HEAD",
) -> RepositoryInfo:
    """Gather repository metadata; any piece git cannot provide is None."""
    author_name, author_email = get_commit_author(runner, commit_ref)
    return RepositoryInfo(
        repo_name=normalize_remote_url(get_remote_url(runner, remote)),
        branch_name=branch_name or get_repo_branch(runner),
        commit_sha=_stripped_output(runner, ["rev-parse", commit_ref]),
        commit_message=get_commit_message(runner, commit_ref),
        author_name=author_name,
        author_email=author_email,
    )
