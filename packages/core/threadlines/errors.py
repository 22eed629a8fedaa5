"""Exception types raised by threadlines."""

from __future__ import annotations

from typing import Optional, Sequence


class ThreadlineError(Exception):
    """Base class for all threadlines failures."""


class ConfigurationError(ThreadlineError):
    """Missing credentials, unreadable config, or no usable threadlines."""


class InvalidThreadlineError(ConfigurationError):
    """A threadline file failed validation."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"{file_path}: {reason}")


class RepositoryStateError(ThreadlineError):
    """The repository cannot produce the requested comparison."""


class NothingToReviewError(RepositoryStateError):
    """Local review found no staged, unstaged, or untracked changes."""


class RootCommitError(RepositoryStateError):
    """A commit has no parent, so there is nothing to diff it against."""

    def __init__(self, sha: str):
        self.sha = sha
        super().__init__(f"Commit {sha} has no parent (root commit); nothing to diff against")


class FetchError(ThreadlineError):
    """A fetch for a specific ref or object failed."""

    def __init__(self, target: str, detail: str = ""):
        self.target = target
        self.detail = detail
        message = f"Failed to fetch {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ParseError(ThreadlineError):
    """Diff text could not be parsed into file sections."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class GitCommandError(ThreadlineError):
    """A git subprocess exited unsuccessfully."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(f"`{self.command}` failed (exit {returncode}): {detail}")

    @property
    def command(self) -> str:
        return " ".join(self.argv)


class ProviderError(ThreadlineError):
    """The evaluation provider failed or returned an unusable response."""

    kind = "provider"


class EvaluationTimeoutError(ProviderError):
    """The evaluation provider did not answer within its own deadline."""

    kind = "timeout"
