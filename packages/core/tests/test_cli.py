"""Tests for CLI commands"""

import json
import re

import pytest
from click.testing import CliRunner

from threadlines.api.client import SyncError
from threadlines.cli.main import cli
from threadlines.evaluation.provider import EvaluationResponse
from threadlines.git.repo import RepositoryInfo

from conftest import requires_git, run_git

THREADLINE = """---
id: no-print
version: 1.0.0
patterns:
  - "**/*.py"
---

Library code must not call print().
"""

CI_VARIABLES = (
    "VERCEL",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "CI",
    "BITBUCKET_BUILD_NUMBER",
    "BITBUCKET_COMMIT",
    "THREADLINE_MODEL",
    "THREADLINE_MODE",
    "THREADLINE_API_URL",
    "THREADLINE_API_KEY",
    "THREADLINE_ACCOUNT",
)


class StubProvider:
    """Stands in for ClaudeEvaluationProvider inside the CLI."""

    instances = []

    def __init__(self, status="compliant", **kwargs):
        self.status = status
        self.kwargs = kwargs
        self.model = kwargs.get("model")
        self.requests = []
        StubProvider.instances.append(self)

    async def evaluate(self, request):
        self.requests.append(request)
        refs = list(request.files) if self.status == "attention" else []
        return EvaluationResponse(status=self.status, reasoning="src/app.py:1 prints", file_references=refs)


class FailingSyncClient:
    def __init__(self, *args, **kwargs):
        pass

    def sync_results(self, payload):
        raise SyncError("HTTP 500: unavailable")


@pytest.fixture
def runner():
    """Create a CLI test runner"""
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in CI_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))
    StubProvider.instances = []


@pytest.fixture
def project(tmp_path):
    """Folder with one threadline and one Python source file"""
    root = tmp_path / "project"
    (root / "threadlines").mkdir(parents=True)
    (root / "threadlines" / "no-print.md").write_text(THREADLINE)
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("print('hello')\n")
    (root / "README.md").write_text("# Project\n")
    return root


def _flat(output):
    """Collapse rich line wrapping so messages can be matched whole."""
    return " ".join(output.split())


def _use_provider(monkeypatch, status):
    monkeypatch.setattr(
        "threadlines.cli.main.ClaudeEvaluationProvider",
        lambda **kwargs: StubProvider(status, **kwargs),
    )


class TestCLIBasics:
    """Test basic CLI functionality"""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Threadlines" in result.output
        assert "check" in result.output
        assert "init" in result.output

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "threadlines" in result.output.lower()
        assert re.search(r"\d+\.\d+\.\d+", result.output)

    def test_check_help(self, runner):
        result = runner.invoke(cli, ["check", "--help"])
        assert result.exit_code == 0
        for option in ("--commit", "--file", "--folder", "--files", "--full", "--format", "--offline"):
            assert option in result.output


class TestInit:
    def test_init_creates_example(self, runner, tmp_path):
        result = runner.invoke(cli, ["init", str(tmp_path)])

        assert result.exit_code == 0
        example = tmp_path / "threadlines" / "example.md"
        assert example.exists()
        assert "id: example-threadline" in example.read_text()
        assert "Next steps" in result.output

    def test_init_does_not_overwrite(self, runner, tmp_path):
        (tmp_path / "threadlines").mkdir()
        (tmp_path / "threadlines" / "example.md").write_text("mine")

        result = runner.invoke(cli, ["init", str(tmp_path)])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert (tmp_path / "threadlines" / "example.md").read_text() == "mine"


class TestCheck:
    def test_scope_options_are_exclusive(self, runner, project):
        result = runner.invoke(cli, ["check", str(project), "--file", "a.py", "--folder", "src"])

        assert result.exit_code == 1
        assert "at most one" in _flat(result.output)

    def test_attention_exits_non_zero(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "attention")

        result = runner.invoke(cli, ["check", str(project), "--folder", "src", "--offline"])

        assert result.exit_code == 1, result.output
        assert "no-print" in result.output
        assert "attention" in result.output
        assert StubProvider.instances[0].requests[0].files == ("src/app.py",)

    def test_compliant_exits_zero(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")

        result = runner.invoke(cli, ["check", str(project), "--file", "src/app.py", "--offline"])

        assert result.exit_code == 0, result.output
        assert "All threadlines passed" in result.output

    def test_model_option_reaches_provider(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")

        runner.invoke(cli, ["check", str(project), "--files", "src/app.py", "--offline", "-m", "haiku"])

        assert StubProvider.instances[0].kwargs["model"] == "haiku"

    def test_json_output(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")

        result = runner.invoke(
            cli, ["check", str(project), "--folder", ".", "--offline", "--format", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["context"] == "folder"
        assert data["summary"]["compliant"] == 1
        assert data["model"] == "sonnet"
        assert "src/app.py" in data["diff"]["changed_files"]

    def test_json_output_stays_parseable_when_sync_fails(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")
        monkeypatch.setenv("THREADLINE_API_KEY", "key")
        monkeypatch.setenv("THREADLINE_ACCOUNT", "me@example.com")
        monkeypatch.setattr(
            "threadlines.cli.main.collect_repository_info",
            lambda *args, **kwargs: RepositoryInfo(None, None, None, None, None, None),
        )
        monkeypatch.setattr("threadlines.cli.main.ResultSyncClient", FailingSyncClient)

        result = runner.invoke(cli, ["check", str(project), "--folder", "src", "--format", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["summary"]["compliant"] == 1
        assert "Could not sync results" in _flat(result.stderr)

    def test_unmatched_files_are_not_relevant(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "attention")

        result = runner.invoke(
            cli, ["check", str(project), "--file", "README.md", "--offline", "--full"]
        )

        assert result.exit_code == 0, result.output
        assert "not_relevant" in result.output
        assert StubProvider.instances[0].requests == []

    def test_missing_threadlines_folder(self, runner, tmp_path):
        (tmp_path / "a.py").write_text("x = 1\n")

        result = runner.invoke(cli, ["check", str(tmp_path), "--file", "a.py", "--offline"])

        assert result.exit_code == 1
        assert "threadlines init" in _flat(result.output)

    def test_online_mode_requires_credentials(self, runner, project):
        result = runner.invoke(cli, ["check", str(project), "--folder", "src"])

        assert result.exit_code == 1
        assert "THREADLINE_API_KEY" in _flat(result.output)

    def test_outside_repository_without_scope(self, runner, project):
        result = runner.invoke(cli, ["check", str(project), "--offline"])

        assert result.exit_code == 1
        assert "not inside a git repository" in _flat(result.output)

    def test_missing_file(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")

        result = runner.invoke(cli, ["check", str(project), "--file", "ghost.py", "--offline"])

        assert result.exit_code == 1
        assert "File 'ghost.py' not found" in _flat(result.output)

    @pytest.mark.git
    @requires_git
    def test_local_changes_in_git_repository(self, runner, project, monkeypatch):
        _use_provider(monkeypatch, "compliant")
        run_git(project, "init", "-q")
        run_git(project, "add", "threadlines")
        run_git(project, "commit", "-q", "-m", "threadlines")

        result = runner.invoke(cli, ["check", str(project), "--offline"])

        assert result.exit_code == 0, result.output
        assert "Local changes" in result.output
        assert StubProvider.instances[0].requests[0].files == ("src/app.py",)

    @pytest.mark.git
    @requires_git
    def test_clean_repository_has_nothing_to_review(self, runner, project):
        run_git(project, "init", "-q")
        run_git(project, "add", ".")
        run_git(project, "commit", "-q", "-m", "all")

        result = runner.invoke(cli, ["check", str(project), "--offline"])

        assert result.exit_code == 1
        assert "No changes detected" in _flat(result.output)
