"""CI environment detection.

Each provider knows how to recognise its own environment variables and turn
them into a review context. ``detect_provider`` walks an ordered list once at
startup and returns the first provider that applies, with local review as the
fallback.
"""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING, List, Mapping, Optional, Type

from threadlines.context.review import (
    CommitContext,
    LocalContext,
    PullRequestContext,
    ReviewContext,
)
from threadlines.errors import ConfigurationError

if TYPE_CHECKING:
    from threadlines.diff.source import DiffSourceResolver
    from threadlines.models.diff import DiffResult

_GITHUB_PR_REF_RE = re.compile(r"^refs/pull/(\d+)/")


class CIProvider:
    """Base provider: detection plus context resolution from environment variables."""

    name = "Local"
    environment = "local"

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def _get(self, key: str) -> Optional[str]:
        value = (self.environ.get(key) or "").strip()
        return value or None

    def _require(self, key: str) -> str:
        value = self._get(key)
        if not value:
            raise ConfigurationError(f"{self.name} environment detected but {key} is not set")
        return value

    def detect_applicable(self) -> bool:
        raise NotImplementedError

    def resolve_review_context(self) -> ReviewContext:
        raise NotImplementedError

    def branch_name(self) -> Optional[str]:
        return None

    def pull_request_title(self) -> Optional[str]:
        return None

    def get_diff(self, resolver: "DiffSourceResolver") -> "DiffResult":
        return resolver.resolve(self.resolve_review_context())


class VercelProvider(CIProvider):
    """Vercel builds only expose the deployed commit."""

    name = "Vercel"
    environment = "vercel"

    def detect_applicable(self) -> bool:
        return bool(self._get("VERCEL"))

    def resolve_review_context(self) -> ReviewContext:
        return CommitContext(sha=self._require("VERCEL_GIT_COMMIT_SHA"))

    def branch_name(self) -> Optional[str]:
        return self._get("VERCEL_GIT_COMMIT_REF")


class GitHubActionsProvider(CIProvider):
    name = "GitHub Actions"
    environment = "github"

    PULL_REQUEST_EVENTS = {"pull_request", "pull_request_target"}

    def detect_applicable(self) -> bool:
        return self._get("GITHUB_ACTIONS") == "true"

    def is_pull_request(self) -> bool:
        return self._get("GITHUB_EVENT_NAME") in self.PULL_REQUEST_EVENTS

    def resolve_review_context(self) -> ReviewContext:
        if self.is_pull_request():
            ref_match = _GITHUB_PR_REF_RE.match(self._get("GITHUB_REF") or "")
            return PullRequestContext(
                source_branch=self._require("GITHUB_HEAD_REF"),
                target_branch=self._require("GITHUB_BASE_REF"),
                id=ref_match.group(1) if ref_match else None,
                title=self.pull_request_title(),
            )
        return CommitContext(sha=self._require("GITHUB_SHA"))

    def branch_name(self) -> Optional[str]:
        return self._get("GITHUB_HEAD_REF") or self._get("GITHUB_REF_NAME")

    def pull_request_title(self) -> Optional[str]:
        return self._get("PR_TITLE")


class GitLabCIProvider(CIProvider):
    name = "GitLab CI"
    environment = "gitlab"

    def detect_applicable(self) -> bool:
        if self._get("GITLAB_CI"):
            return True
        return bool(self._get("CI") and self._get("CI_COMMIT_SHA"))

    def resolve_review_context(self) -> ReviewContext:
        mr_iid = self._get("CI_MERGE_REQUEST_IID")
        if mr_iid:
            return PullRequestContext(
                source_branch=self._require("CI_MERGE_REQUEST_SOURCE_BRANCH_NAME"),
                target_branch=self._require("CI_MERGE_REQUEST_TARGET_BRANCH_NAME"),
                id=mr_iid,
                title=self.pull_request_title(),
            )
        return CommitContext(sha=self._require("CI_COMMIT_SHA"))

    def branch_name(self) -> Optional[str]:
        return self._get("CI_MERGE_REQUEST_SOURCE_BRANCH_NAME") or self._get("CI_COMMIT_REF_NAME")

    def pull_request_title(self) -> Optional[str]:
        return self._get("CI_MERGE_REQUEST_TITLE")


class BitbucketPipelinesProvider(CIProvider):
    name = "Bitbucket Pipelines"
    environment = "bitbucket"

    def detect_applicable(self) -> bool:
        return bool(self._get("BITBUCKET_BUILD_NUMBER") or self._get("BITBUCKET_COMMIT"))

    def resolve_review_context(self) -> ReviewContext:
        pr_id = self._get("BITBUCKET_PR_ID")
        if pr_id:
            return PullRequestContext(
                source_branch=self._require("BITBUCKET_BRANCH"),
                target_branch=self._require("BITBUCKET_PR_DESTINATION_BRANCH"),
                id=pr_id,
            )
        return CommitContext(sha=self._require("BITBUCKET_COMMIT"))

    def branch_name(self) -> Optional[str]:
        return self._get("BITBUCKET_BRANCH")


class LocalProvider(CIProvider):
    """Fallback when no CI environment is recognised."""

    def detect_applicable(self) -> bool:
        return True

    def resolve_review_context(self) -> ReviewContext:
        return LocalContext()


PROVIDERS: List[Type[CIProvider]] = [
    VercelProvider,
    GitHubActionsProvider,
    GitLabCIProvider,
    BitbucketPipelinesProvider,
    LocalProvider,
]


def detect_provider(environ: Optional[Mapping[str, str]] = None) -> CIProvider:
    """Return the first provider whose environment is present."""
    for provider_cls in PROVIDERS:
        provider = provider_cls(environ)
        if provider.detect_applicable():
            return provider
    return LocalProvider(environ)
