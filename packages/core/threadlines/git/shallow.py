"""Resolve comparisons in clones that may be missing history."""

from __future__ import annotations

import logging
from typing import List, Optional

from threadlines.errors import FetchError, GitCommandError, RootCommitError
from threadlines.git.refs import is_commit_sha, validate_git_ref
from threadlines.git.runner import GitRunner
from threadlines.models.diff import (
    STRATEGY_COMMIT,
    STRATEGY_MERGE_BASE,
    STRATEGY_TWO_POINT,
    DiffResult,
)

# Plumbing diff with fixed prefixes so user diff config cannot change the format
TREE_DIFF_ARGS = ("diff-tree", "-r", "-M", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")


class ShallowCloneResolver:
    """
    Fetch missing objects on demand and compute commit or branch diffs.

    Object reads and diffs use plumbing commands (``cat-file``, ``diff-tree``),
    which keep working across a shallow boundary once the objects exist.
    """

    def __init__(
        self,
        runner: GitRunner,
        *,
        remote: str = "origin",
        git_context_lines: int = 200,
        branch_fetch_depth: int = 50,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.remote = remote
        self.git_context_lines = git_context_lines
        self.branch_fetch_depth = branch_fetch_depth
        self.logger = logger or logging.getLogger(__name__)

    # -- objects -------------------------------------------------------

    def has_commit(self, sha: str) -> bool:
        return self.runner.run(["cat-file", "-e", f"{sha}^{{commit}}"], check=False).ok

    def ensure_object(self, sha: str) -> None:
        """Make sure commit ``sha`` exists locally, fetching only that object if needed.

        Raises:
            FetchError: If the fetch fails or the object is still missing
        """
        if self.has_commit(sha):
            return

        self.logger.info("Commit %s is not available locally; fetching it from %s", sha, self.remote)
        result = self.runner.run(["fetch", "--no-tags", "--depth=1", self.remote, sha], check=False)
        if not result.ok:
            raise FetchError(sha, result.stderr.strip() or f"git fetch exited {result.returncode}")
        if not self.has_commit(sha):
            raise FetchError(sha, "object still missing after fetch")

    def resolve_commit(self, ref: str) -> str:
        """Resolve ``ref`` to a full sha, fetching it first when it looks like a missing sha."""
        validate_git_ref(ref)
        if is_commit_sha(ref) and not self.has_commit(ref):
            self.ensure_object(ref)
        return self.runner.output(["rev-parse", "--verify", f"{ref}^{{commit}}"]).strip()

    def get_parent_commit(self, sha: str) -> str:
        """
        Read the first parent of ``sha`` from the raw commit object.

        Raises:
            RootCommitError: If the commit has no parent
        """
        self.ensure_object(sha)
        raw = self.runner.output(["cat-file", "-p", sha])
        for line in raw.splitlines():
            if not line:
                break
            if line.startswith("parent "):
                return line.split()[1]
        raise RootCommitError(sha)

    # -- commit diffs --------------------------------------------------

    def _tree_diff(self, base: str, head: str) -> tuple[str, List[str]]:
        text = self.runner.output(
            [*TREE_DIFF_ARGS, "-p", f"-U{self.git_context_lines}", base, head]
        )
        names = self.runner.lines([*TREE_DIFF_ARGS, "--name-only", base, head])
        return text, names

    def commit_diff(self, ref: str) -> DiffResult:
        """Diff a single commit against its first parent."""
        sha = self.resolve_commit(ref)
        parent = self.get_parent_commit(sha)
        self.ensure_object(parent)
        text, names = self._tree_diff(parent, sha)
        self.logger.debug("Commit diff %s..%s touches %d file(s)", parent[:12], sha[:12], len(names))
        return DiffResult.build(text, names, STRATEGY_COMMIT, base=parent, head=sha)

    # -- branch diffs --------------------------------------------------

    def is_shallow(self) -> bool:
        result = self.runner.run(["rev-parse", "--is-shallow-repository"], check=False)
        return result.ok and result.stdout.strip() == "true"

    def ensure_branch(self, branch: str) -> str:
        """
        Fetch ``branch`` into its remote-tracking ref.

        Depth is limited only when the clone is already shallow, so full
        clones keep their history.

        Returns:
            The remote-tracking ref name

        Raises:
            FetchError: Naming the ref when the fetch fails
        """
        validate_git_ref(branch)
        tracking_ref = f"refs/remotes/{self.remote}/{branch}"
        args = ["fetch", "--no-tags"]
        if self.is_shallow():
            args.append(f"--depth={self.branch_fetch_depth}")
        args.extend([self.remote, f"+refs/heads/{branch}:{tracking_ref}"])

        self.logger.info("Fetching %s/%s", self.remote, branch)
        result = self.runner.run(args, check=False)
        if not result.ok:
            raise FetchError(f"{self.remote}/{branch}", result.stderr.strip() or f"git fetch exited {result.returncode}")
        return tracking_ref

    def merge_base(self, left: str, right: str) -> Optional[str]:
        """Common ancestor of two commits, or None when history has none to offer."""
        result = self.runner.run(["merge-base", left, right], check=False)
        if result.ok:
            return result.stdout.strip() or None
        if result.returncode == 1 and not result.stdout.strip():
            return None
        raise GitCommandError(result.argv, result.returncode, result.stderr)

    def merge_base_diff(self, target_branch: str, head: str = "HEAD") -> DiffResult:
        """
        Diff ``head`` against its merge base with ``target_branch``.

        Falls back to a two-point diff against the target tip when no merge
        base is reachable, logging a warning and recording it on the result.
        """
        tracking_ref = self.ensure_branch(target_branch)
        head_sha = self.resolve_commit(head)
        target_sha = self.runner.output(["rev-parse", "--verify", f"{tracking_ref}^{{commit}}"]).strip()

        base = self.merge_base(target_sha, head_sha)
        if base:
            text, names = self._tree_diff(base, head_sha)
            return DiffResult.build(text, names, STRATEGY_MERGE_BASE, base=base, head=head_sha)

        warning = (
            f"No merge base found between {self.remote}/{target_branch} and {head}; "
            "the clone history may be too shallow. Falling back to a two-point diff, "
            "which can include upstream changes made after the branch diverged."
        )
        self.logger.warning(warning)
        text, names = self._tree_diff(target_sha, head_sha)
        return DiffResult.build(
            text, names, STRATEGY_TWO_POINT, base=target_sha, head=head_sha, warnings=[warning]
        )
