"""Shared test fixtures."""

import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Tuple, Union

import pytest

from threadlines.errors import GitCommandError
from threadlines.git.runner import GitResult, GitRunner
from threadlines.models.threadline import Threadline

Outcome = Union[str, Tuple[int, str, str]]

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")
requires_symlinks = pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")


class FakeGitRunner(GitRunner):
    """GitRunner whose responses come from a handler instead of a subprocess."""

    def __init__(self, repo: Path, handler: Callable[[tuple], Outcome]):
        super().__init__(repo)
        self.handler = handler
        self.calls: list[tuple] = []

    def run(self, args, *, check=True):
        args = tuple(args)
        self.calls.append(args)
        outcome = self.handler(args)
        if isinstance(outcome, str):
            outcome = (0, outcome, "")
        returncode, stdout, stderr = outcome
        result = GitResult(argv=("git", *args), returncode=returncode, stdout=stdout, stderr=stderr)
        if check and returncode != 0:
            raise GitCommandError(result.argv, returncode, stderr)
        return result


@pytest.fixture
def fake_git(tmp_path):
    """Factory for FakeGitRunner rooted at tmp_path."""

    def _make(handler: Callable[[tuple], Outcome]) -> FakeGitRunner:
        return FakeGitRunner(tmp_path, handler)

    return _make


def run_git(repo: Path, *args: str) -> str:
    """Run real git with a fixed identity, for integration tests."""
    completed = subprocess.run(
        [
            "git",
            "-c", "user.name=Threadlines Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout


@pytest.fixture
def git_repo(tmp_path):
    """Empty git repository on branch main."""
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "-q")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    return repo


def make_threadline(
    threadline_id: str = "no-print",
    patterns=("**/*.py",),
    content: str = "Do not call print() in library code.",
    context_files=(),
) -> Threadline:
    return Threadline(
        id=threadline_id,
        version="1.0.0",
        patterns=tuple(patterns),
        content=content,
        file_path=f"threadlines/{threadline_id}.md",
        context_files=tuple(context_files),
    )


TWO_FILE_DIFF = """\
diff --git a/a.ts b/a.ts
index 1111111..2222222 100644
--- a/a.ts
+++ b/a.ts
@@ -1,3 +1,3 @@
 const x = 1;
-const fruit = 'apple';
+const fruit = 'banana';
 export { x };
diff --git a/b.ts b/b.ts
index 3333333..4444444 100644
--- a/b.ts
+++ b/b.ts
@@ -1,2 +1,3 @@
 const y = 2;
+const z = 3;
 export { y };
"""
