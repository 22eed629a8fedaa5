"""Main CLI entry point for threadlines"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from threadlines import __version__
from threadlines.api.client import ResultSyncClient, SyncError, build_sync_payload
from threadlines.config import Credentials, ThreadlineConfig, get_credentials, load_config
from threadlines.context.providers import CIProvider, detect_provider
from threadlines.context.review import (
    CommitContext,
    ExplicitPathContext,
    PathKind,
    ReviewContext,
    describe_context,
)
from threadlines.diff.source import DiffSourceResolver
from threadlines.errors import NothingToReviewError, RepositoryStateError, ThreadlineError
from threadlines.evaluation.provider import ClaudeEvaluationProvider
from threadlines.git.repo import collect_repository_info, find_repo_root
from threadlines.git.runner import GitRunner
from threadlines.log import configure_logging
from threadlines.models.diff import DiffResult
from threadlines.models.result import CheckReport, TaskStatus
from threadlines.models.threadline import Threadline
from threadlines.rules.loader import THREADLINES_DIR, find_threadlines
from threadlines.scanner.dispatcher import ThreadlineDispatcher

console = Console()
error_console = Console(stderr=True)

TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "example.md"
ENV_FILE = ".env.local"

STATUS_STYLES = {
    TaskStatus.COMPLIANT: ("✅", "green"),
    TaskStatus.ATTENTION: ("⚠️ ", "yellow"),
    TaskStatus.NOT_RELEVANT: ("➖", "dim"),
    TaskStatus.ERROR: ("❌", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="threadlines")
def cli():
    """
    🧵 Threadlines - check code changes against your team's written rules

    Each threadline is a Markdown file in /threadlines describing one
    convention; every change is evaluated against the threadlines whose
    patterns match the changed files.
    """
    pass


def _explicit_context(
    file_path: Optional[str], folder: Optional[str], files: Tuple[str, ...]
) -> Optional[ExplicitPathContext]:
    if file_path:
        return ExplicitPathContext(kind=PathKind.FILE, paths=(file_path,))
    if folder:
        return ExplicitPathContext(kind=PathKind.FOLDER, paths=(folder,))
    if files:
        return ExplicitPathContext(kind=PathKind.FILE_LIST, paths=tuple(files))
    return None


def _display_text_results(report: CheckReport, full: bool) -> None:
    """Display results in plain text format"""
    shown = [
        result
        for result in report.results
        if full or result.status in (TaskStatus.ATTENTION, TaskStatus.ERROR)
    ]

    for result in shown:
        icon, style = STATUS_STYLES[result.status]
        console.print(
            f"\n{icon} [bold {style}]{escape(result.threadline_id)}[/bold {style}] "
            f"[{style}]{result.status.value}[/{style}]"
        )
        if result.reasoning:
            console.print(f"   {escape(result.reasoning)}")
        if result.file_references:
            console.print(f"   Files: {escape(', '.join(result.file_references))}")

    summary = report.summary()
    parts = [
        f"{summary['compliant']} compliant",
        f"{summary['attention']} attention",
        f"{summary['not_relevant']} not relevant",
    ]
    if report.timed_out:
        parts.append(f"{report.timed_out} timed out")
    if report.errors:
        parts.append(f"{report.errors} errors")
    console.print(f"\n{report.total} threadline(s): " + ", ".join(parts))

    if not report.has_failures:
        console.print("[bold green]✅ All threadlines passed[/bold green]")
    elif not full:
        console.print("[dim]Run with --full to see every result[/dim]")


def _sync_results(
    *,
    config: ThreadlineConfig,
    credentials: Credentials,
    root: Path,
    context: ReviewContext,
    provider: CIProvider,
    threadlines: list[Threadline],
    diff_result: DiffResult,
    report: CheckReport,
    logger: logging.Logger,
    out: Console = console,
) -> None:
    commit_ref = context.sha if isinstance(context, CommitContext) else "HEAD"
    repo_info = collect_repository_info(
        GitRunner(root, logger=logger),
        remote=config.remote,
        branch_name=provider.branch_name(),
        commit_ref=commit_ref,
    )
    payload = build_sync_payload(
        threadlines=threadlines,
        diff_result=diff_result,
        report=report,
        credentials=credentials,
        repo_info=repo_info,
        review_context=context.context_type,
        environment=provider.environment,
        cli_version=__version__,
        pr_title=provider.pull_request_title(),
    )
    try:
        response = ResultSyncClient(config.api_url, logger=logger).sync_results(payload)
    except SyncError as e:
        out.print(f"[yellow]⚠️  Could not sync results:[/yellow] {escape(str(e))}")
        return
    if response.check_id:
        out.print(f"[dim]Results synced (check {response.check_id})[/dim]")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--commit", help="Review a single commit against its parent")
@click.option("--file", "file_path", help="Review one file as if newly added")
@click.option("--folder", help="Review every file in a folder as if newly added")
@click.option("--files", multiple=True, help="Review several files (repeat the option)")
@click.option("--full", is_flag=True, help="Show every result, not only attention and errors")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--model", "-m", default=None, help="Claude model to use (e.g., sonnet, haiku)")
@click.option("--offline", is_flag=True, help="Do not sync results to the threadlines service")
@click.option("--debug", is_flag=True, help="Show verbose diagnostic output")
def check(
    path: str,
    commit: Optional[str],
    file_path: Optional[str],
    folder: Optional[str],
    files: Tuple[str, ...],
    full: bool,
    output_format: str,
    model: Optional[str],
    offline: bool,
    debug: bool,
):
    """
    Check changes against every threadline.

    Without a scope option, the review scope comes from the CI environment
    (pull/merge request or pushed commit) or, locally, from staged changes,
    falling back to unstaged and untracked files.

    Examples:

        threadlines check

        threadlines check --commit abc1234

        threadlines check --folder src/api --full
    """
    stage = "starting up"
    try:
        scope_count = sum([bool(commit), bool(file_path), bool(folder), bool(files)])
        if scope_count > 1:
            console.print(
                "[bold red]❌ Choose at most one of --commit, --file, --folder, or --files[/bold red]"
            )
            sys.exit(1)

        logger = configure_logging(debug)
        start = Path(path).resolve()

        stage = "locating repository"
        repo_root = find_repo_root(start)
        explicit = _explicit_context(file_path, folder, files)
        if repo_root is None and explicit is None:
            raise RepositoryStateError(f"{start} is not inside a git repository")
        root = repo_root or start
        load_dotenv(root / ENV_FILE, override=False)

        stage = "loading configuration"
        config = load_config(
            start,
            repo_root=root,
            model_override=model,
            mode_override="offline" if offline else None,
        )
        credentials = get_credentials() if config.is_online else None

        stage = "loading threadlines"
        threadlines = find_threadlines(root, logger)

        stage = "detecting review context"
        provider = detect_provider()
        if explicit is not None:
            context: ReviewContext = explicit
        elif commit:
            context = CommitContext(sha=commit)
        else:
            context = provider.resolve_review_context()
        logger.debug("Environment: %s", provider.name)

        if output_format == "text":
            console.print(f"🧵 Threadlines v{__version__}: {escape(describe_context(context))}")
            console.print(f"[dim]{len(threadlines)} threadline(s), model {config.model}[/dim]")

        stage = "computing diff"
        resolver = DiffSourceResolver(root, config, logger=logger)
        if explicit is None and not commit:
            diff_result = provider.get_diff(resolver)
        else:
            diff_result = resolver.resolve(context)
        if not diff_result.changed_files:
            raise NothingToReviewError("No changed files found to review")
        if output_format == "text":
            console.print(f"[dim]{len(diff_result.changed_files)} changed file(s)[/dim]")

        stage = "evaluating threadlines"
        dispatcher = ThreadlineDispatcher(
            ClaudeEvaluationProvider(
                model=config.model,
                request_timeout_seconds=config.request_timeout_seconds,
                cwd=root,
                logger=logger,
            ),
            root=root,
            diff_context_lines=config.diff_context_lines,
            task_timeout_seconds=config.task_timeout_seconds,
            logger=logger,
        )
        report = asyncio.run(dispatcher.dispatch(threadlines, diff_result))

        if output_format == "json":
            data = report.to_dict()
            data["context"] = context.context_type
            data["diff"] = diff_result.to_dict()
            console.print_json(data=data)
        else:
            _display_text_results(report, full)

        if credentials is not None:
            stage = "syncing results"
            _sync_results(
                config=config,
                credentials=credentials,
                root=root,
                context=context,
                provider=provider,
                threadlines=threadlines,
                diff_result=diff_result,
                report=report,
                logger=logger,
                out=error_console if output_format == "json" else console,
            )

        sys.exit(1 if report.has_failures else 0)

    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Check cancelled by user[/yellow]")
        sys.exit(130)
    except ThreadlineError as e:
        console.print(f"\n[bold red]❌ Error while {stage}:[/bold red] {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]❌ Error while {stage}:[/bold red] {type(e).__name__}: {escape(str(e))}")
        console.print("\n[dim]Run with --debug for more detail[/dim]")
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
def init(path: str):
    """Create threadlines/example.md as a starting point."""
    try:
        threadlines_dir = Path(path).resolve() / THREADLINES_DIR
        example_file = threadlines_dir / "example.md"

        if not threadlines_dir.exists():
            threadlines_dir.mkdir(parents=True)
            console.print(f"[green]✓ Created {threadlines_dir}[/green]")

        if example_file.exists():
            console.print(f"[yellow]⚠️  {example_file} already exists[/yellow]")
            console.print("[dim]   Edit it, or delete it and run init again.[/dim]")
            return

        example_file.write_text(TEMPLATE_PATH.read_text(encoding="utf-8"), encoding="utf-8")
        console.print(f"[green]✓ Created {example_file}[/green]")
        console.print("\n[bold]Next steps:[/bold]")
        console.print("  1. Edit threadlines/example.md with your convention")
        console.print("  2. Rename it to something descriptive (e.g., error-handling.md)")
        console.print(f"  3. Put THREADLINE_API_KEY and THREADLINE_ACCOUNT in {ENV_FILE} (keep it out of git)")
        console.print("     or run checks with --offline")
        console.print("  4. Run: threadlines check")
    except OSError as e:
        console.print(f"\n[bold red]❌ Error:[/bold red] {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
