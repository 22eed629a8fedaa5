"""Tests for syncing results to the threadlines service."""

import pytest
import requests

from threadlines.api.client import ResultSyncClient, SyncError, build_sync_payload
from threadlines.config import Credentials
from threadlines.git.repo import RepositoryInfo
from threadlines.models.diff import STRATEGY_COMMIT, DiffResult
from threadlines.models.result import CheckReport, ErrorDetail, TaskResult, TaskStatus

from conftest import TWO_FILE_DIFF, make_threadline


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.exc:
            raise self.exc
        return self.response


def _payload():
    report = CheckReport(
        results=[
            TaskResult("no-print", TaskStatus.ATTENTION, "a.ts:2", file_references=("a.ts",)),
            TaskResult(
                "slow",
                TaskStatus.ERROR,
                "Error: timed out",
                error=ErrorDetail(kind="timeout", message="timed out"),
            ),
        ],
        model="sonnet",
    )
    return build_sync_payload(
        threadlines=[make_threadline()],
        diff_result=DiffResult.build(TWO_FILE_DIFF, [], STRATEGY_COMMIT),
        report=report,
        credentials=Credentials(api_key="key", account="me@example.com"),
        repo_info=RepositoryInfo(
            repo_name="https://github.com/acme/app",
            branch_name="main",
            commit_sha="abc",
            commit_message="Fix",
            author_name="Dev",
            author_email="dev@example.com",
        ),
        review_context="commit",
        environment="github",
        cli_version="0.1.0",
    )


def test_build_sync_payload():
    payload = _payload()

    assert payload["files"] == ["a.ts", "b.ts"]
    assert payload["threadlines"][0]["id"] == "no-print"
    assert payload["threadlines"][0]["filePath"] == "threadlines/no-print.md"
    assert payload["results"][0]["expertId"] == "no-print"
    assert payload["results"][0]["fileReferences"] == ["a.ts"]
    assert payload["results"][1]["error"] == {"message": "timed out", "type": "timeout"}
    assert payload["metadata"] == {
        "totalThreadlines": 2,
        "completed": 1,
        "timedOut": 1,
        "errors": 0,
        "llmModel": "sonnet",
    }
    assert payload["apiKey"] == "key"
    assert payload["repoName"] == "https://github.com/acme/app"
    assert payload["reviewContext"] == "commit"
    assert payload["prTitle"] is None


def test_sync_results_posts_to_endpoint():
    session = FakeSession(FakeResponse(body={"success": True, "checkId": "chk_1"}))
    client = ResultSyncClient("https://example.test/", session=session, timeout=5)

    response = client.sync_results(_payload())

    assert response.success
    assert response.check_id == "chk_1"
    assert session.calls[0]["url"] == "https://example.test/api/threadline-check-results"
    assert session.calls[0]["timeout"] == 5


@pytest.mark.parametrize(
    "session, match",
    [
        (FakeSession(exc=requests.Timeout("slow")), "timeout"),
        (FakeSession(exc=requests.ConnectionError("refused")), "failed"),
        (FakeSession(FakeResponse(status_code=401, text="Invalid API key")), "HTTP 401: Invalid API key"),
        (FakeSession(FakeResponse(status_code=200, body=None)), "Invalid JSON"),
    ],
)
def test_sync_failures_raise_sync_error(session, match):
    client = ResultSyncClient("https://example.test", session=session)

    with pytest.raises(SyncError, match=match):
        client.sync_results(_payload())
