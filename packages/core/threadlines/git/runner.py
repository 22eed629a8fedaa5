"""Subprocess wrapper for git commands."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from threadlines.errors import GitCommandError, RepositoryStateError

# Keep non-ASCII paths unescaped in name listings
GIT_BASE_ARGS = ("git", "-c", "core.quotepath=off")


@dataclass(frozen=True)
class GitResult:
    """Result envelope for one git invocation."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Run git in a fixed working directory and surface failures as GitCommandError."""

    def __init__(self, repo: Path, logger: Optional[logging.Logger] = None):
        self.repo = Path(repo)
        self.logger = logger or logging.getLogger(__name__)

    def run(self, args: Sequence[str], *, check: bool = True) -> GitResult:
        """
        Run ``git <args>`` in the repository.

        Args:
            args: Arguments after ``git``
            check: Raise GitCommandError on a non-zero exit when True

        Returns:
            GitResult with decoded stdout/stderr
        """
        argv = [*GIT_BASE_ARGS, *args]
        self.logger.debug("Running: %s", " ".join(argv))
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            completed = subprocess.run(
                argv,
                cwd=self.repo,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                check=False,
            )
        except FileNotFoundError as exc:
            raise RepositoryStateError(f"git executable not found while running `{' '.join(argv)}`") from exc

        result = GitResult(
            argv=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise GitCommandError(result.argv, result.returncode, result.stderr)
        return result

    def output(self, args: Sequence[str]) -> str:
        """Run a command that must succeed and return its stdout."""
        return self.run(args).stdout

    def lines(self, args: Sequence[str]) -> list[str]:
        return [line for line in self.output(args).splitlines() if line.strip()]
