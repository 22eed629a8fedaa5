"""Review contexts: what a check run compares."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class PathKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"
    FILE_LIST = "files"


@dataclass(frozen=True)
class PullRequestContext:
    """A pull/merge request: compare the source branch against its target."""

    source_branch: str
    target_branch: str
    id: Optional[str] = None
    title: Optional[str] = None

    context_type = "pr"


@dataclass(frozen=True)
class CommitContext:
    """A single commit compared against its first parent."""

    sha: str

    context_type = "commit"


@dataclass(frozen=True)
class LocalContext:
    """Uncommitted changes in the working tree."""

    context_type = "local"


@dataclass(frozen=True)
class ExplicitPathContext:
    """Files named on the command line, reviewed as if newly added."""

    kind: PathKind
    paths: Tuple[str, ...]

    @property
    def context_type(self) -> str:
        return self.kind.value


ReviewContext = Union[PullRequestContext, CommitContext, LocalContext, ExplicitPathContext]


def describe_context(context: ReviewContext) -> str:
    """One-line human description used in CLI output."""
    if isinstance(context, PullRequestContext):
        label = f"PR #{context.id}" if context.id else "PR"
        return f"{label}: {context.source_branch} → {context.target_branch}"
    if isinstance(context, CommitContext):
        return f"Commit {context.sha[:12]}"
    if isinstance(context, ExplicitPathContext):
        if context.kind is PathKind.FILE_LIST:
            return f"Files: {', '.join(context.paths)}"
        return f"{context.kind.value.capitalize()}: {context.paths[0]}"
    return "Local changes"
