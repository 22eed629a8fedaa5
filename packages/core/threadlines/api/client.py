"""HTTP client that syncs check results to the threadlines service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import requests

from threadlines.config import Credentials
from threadlines.git.repo import RepositoryInfo
from threadlines.models.diff import DiffResult
from threadlines.models.result import CheckReport, TaskResult
from threadlines.models.threadline import Threadline

SYNC_ENDPOINT = "/api/threadline-check-results"
SYNC_TIMEOUT_SECONDS = 60


class SyncError(Exception):
    """Result upload failed; never changes the check outcome."""


@dataclass(frozen=True)
class SyncResponse:
    success: bool
    check_id: Optional[str] = None


def _result_payload(result: TaskResult) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "expertId": result.threadline_id,
        "status": result.status.value,
        "reasoning": result.reasoning,
        "fileReferences": list(result.file_references),
        "relevantFiles": list(result.relevant_files),
        "filteredDiff": result.filtered_diff,
    }
    if result.error:
        payload["error"] = {"message": result.error.message, "type": result.error.kind}
    return payload


def build_sync_payload(
    *,
    threadlines: Sequence[Threadline],
    diff_result: DiffResult,
    report: CheckReport,
    credentials: Credentials,
    repo_info: RepositoryInfo,
    review_context: str,
    environment: str,
    cli_version: str,
    pr_title: Optional[str] = None,
) -> Dict[str, Any]:
    """Assemble the JSON body expected by the results endpoint."""
    return {
        "threadlines": [
            {
                "id": t.id,
                "version": t.version,
                "patterns": list(t.patterns),
                "content": t.content,
                "filePath": t.file_path,
                "contextFiles": list(t.context_files),
            }
            for t in threadlines
        ],
        "diff": diff_result.text,
        "files": list(diff_result.changed_files),
        "results": [_result_payload(result) for result in report.results],
        "metadata": {
            "totalThreadlines": report.total,
            "completed": report.completed,
            "timedOut": report.timed_out,
            "errors": report.errors,
            "llmModel": report.model,
        },
        "apiKey": credentials.api_key,
        "account": credentials.account,
        "repoName": repo_info.repo_name,
        "branchName": repo_info.branch_name,
        "commitSha": repo_info.commit_sha,
        "commitMessage": repo_info.commit_message,
        "commitAuthorName": repo_info.author_name,
        "commitAuthorEmail": repo_info.author_email,
        "prTitle": pr_title,
        "environment": environment,
        "cliVersion": cli_version,
        "reviewContext": review_context,
    }


class ResultSyncClient:
    """POST check results to ``<api_url>/api/threadline-check-results``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def sync_results(self, payload: Dict[str, Any]) -> SyncResponse:
        """
        Upload one run's results.

        Raises:
            SyncError: On network failure, timeout, non-2xx status, or unreadable body
        """
        url = f"{self.base_url}{SYNC_ENDPOINT}"
        self.logger.debug("Syncing %d result(s) to %s", len(payload.get("results", [])), url)
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as exc:
            raise SyncError(f"Request timeout after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise SyncError(f"Request to {url} failed: {exc}") from exc

        if not response.ok:
            raise SyncError(f"HTTP {response.status_code}: {response.text.strip()[:500]}")
        try:
            body = response.json()
        except ValueError as exc:
            raise SyncError(f"Invalid JSON from {url}: {exc}") from exc

        return SyncResponse(success=bool(body.get("success", True)), check_id=body.get("checkId"))
