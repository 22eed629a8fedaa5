"""Collect uncommitted changes from the local working tree."""

from __future__ import annotations

import logging
from typing import List, Optional

from threadlines.diff.synthetic import build_added_files_diff
from threadlines.errors import NothingToReviewError
from threadlines.git.runner import GitRunner
from threadlines.models.diff import STRATEGY_STAGED, STRATEGY_UNSTAGED, DiffResult

WORKTREE_DIFF_ARGS = ("diff", "-M", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")

NOTHING_TO_REVIEW_MESSAGE = (
    'No changes detected. Stage files with "git add" or modify files to run threadlines.'
)


class LocalChangeCollector:
    """
    Partition the working tree into staged, unstaged and untracked changes.

    Staged changes win: when anything is staged, only the index is reviewed.
    Otherwise unstaged edits are reviewed together with untracked files,
    which are rendered as all-added sections.
    """

    def __init__(
        self,
        runner: GitRunner,
        *,
        git_context_lines: int = 200,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.git_context_lines = git_context_lines
        self.logger = logger or logging.getLogger(__name__)

    def staged_files(self) -> List[str]:
        return self.runner.lines([*WORKTREE_DIFF_ARGS, "--cached", "--name-only"])

    def unstaged_files(self) -> List[str]:
        return self.runner.lines([*WORKTREE_DIFF_ARGS, "--name-only"])

    def untracked_files(self) -> List[str]:
        output = self.runner.output(["ls-files", "--others", "--exclude-standard", "-z"])
        return [path for path in output.split("\0") if path]

    def collect(self) -> DiffResult:
        """
        Build the diff for a local review.

        Raises:
            NothingToReviewError: If nothing is staged, modified, or untracked
        """
        context_arg = f"-U{self.git_context_lines}"

        staged = self.staged_files()
        if staged:
            self.logger.info("Reviewing %d staged file(s)", len(staged))
            text = self.runner.output([*WORKTREE_DIFF_ARGS, "--cached", context_arg])
            return DiffResult.build(text, staged, STRATEGY_STAGED, base="HEAD", head="index")

        unstaged = self.unstaged_files()
        untracked = self.untracked_files()
        if not unstaged and not untracked:
            raise NothingToReviewError(NOTHING_TO_REVIEW_MESSAGE)

        self.logger.info(
            "Reviewing %d unstaged and %d untracked file(s)", len(unstaged), len(untracked)
        )
        text = self.runner.output([*WORKTREE_DIFF_ARGS, context_arg]) if unstaged else ""
        if text and not text.endswith("\n"):
            text += "\n"

        repo = self.runner.repo
        added_text, added_paths = build_added_files_diff(
            repo, [repo / path for path in untracked], log=self.logger
        )
        return DiffResult.build(
            text + added_text,
            [*unstaged, *added_paths],
            STRATEGY_UNSTAGED,
            base="index",
            head="worktree",
        )
