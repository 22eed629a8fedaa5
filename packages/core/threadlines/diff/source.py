"""Turn a review context into a DiffResult."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from threadlines.config import ThreadlineConfig
from threadlines.context.review import (
    CommitContext,
    ExplicitPathContext,
    LocalContext,
    PathKind,
    PullRequestContext,
    ReviewContext,
)
from threadlines.diff.synthetic import build_added_files_diff, collect_file, collect_folder
from threadlines.errors import RepositoryStateError
from threadlines.git.local import LocalChangeCollector
from threadlines.git.refs import validate_git_ref
from threadlines.git.runner import GitRunner
from threadlines.git.shallow import ShallowCloneResolver
from threadlines.models.diff import STRATEGY_EXPLICIT, DiffResult

__all__ = ["DiffResult", "DiffSourceResolver"]


class DiffSourceResolver:
    """
    Resolve any review context into diff text and the files it touches.

    PR and commit contexts go through the shallow-clone resolver, local
    contexts through the working-tree collector, and explicit paths are
    read from disk without touching git.
    """

    def __init__(
        self,
        root: Path,
        config: Optional[ThreadlineConfig] = None,
        *,
        runner: Optional[GitRunner] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.root = Path(root)
        self.config = config or ThreadlineConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.runner = runner or GitRunner(self.root, logger=self.logger)

    @property
    def shallow(self) -> ShallowCloneResolver:
        return ShallowCloneResolver(
            self.runner,
            remote=self.config.remote,
            git_context_lines=self.config.git_context_lines,
            branch_fetch_depth=self.config.branch_fetch_depth,
            logger=self.logger,
        )

    def resolve(self, context: ReviewContext) -> DiffResult:
        """
        Compute the diff for ``context``.

        Raises:
            RepositoryStateError: Invalid refs, nothing to review, root commit, bad paths
            FetchError: A required ref or object could not be fetched
            GitCommandError: Any other git failure
        """
        if isinstance(context, PullRequestContext):
            return self._resolve_pull_request(context)
        if isinstance(context, CommitContext):
            return self._resolve_commit(context)
        if isinstance(context, LocalContext):
            return LocalChangeCollector(
                self.runner,
                git_context_lines=self.config.git_context_lines,
                logger=self.logger,
            ).collect()
        if isinstance(context, ExplicitPathContext):
            return self._resolve_explicit(context)
        raise TypeError(f"Unsupported review context: {context!r}")

    def _validated(self, ref: str) -> str:
        try:
            return validate_git_ref(ref)
        except ValueError as exc:
            raise RepositoryStateError(str(exc)) from exc

    def _resolve_pull_request(self, context: PullRequestContext) -> DiffResult:
        target = self._validated(context.target_branch)
        self.logger.info("Comparing %s against merge base with %s", context.source_branch, target)
        return self.shallow.merge_base_diff(target)

    def _resolve_commit(self, context: CommitContext) -> DiffResult:
        sha = self._validated(context.sha)
        self.logger.info("Reviewing commit %s", sha)
        return self.shallow.commit_diff(sha)

    def _resolve_explicit(self, context: ExplicitPathContext) -> DiffResult:
        if not context.paths:
            raise RepositoryStateError(f"No paths given for {context.kind.value} review")

        files: List[Path] = []
        if context.kind is PathKind.FOLDER:
            for raw in context.paths:
                files.extend(collect_folder(self.root, raw))
        else:
            files.extend(collect_file(self.root, raw) for raw in context.paths)

        text, paths = build_added_files_diff(self.root, files, log=self.logger)
        self.logger.debug("Read %d file(s) for %s review", len(paths), context.kind.value)
        return DiffResult.build(text, paths, STRATEGY_EXPLICIT)
