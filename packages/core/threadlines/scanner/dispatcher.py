"""Run one evaluation per threadline, concurrently and in isolation."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from threadlines.diff.filter import filter_diff_by_files
from threadlines.diff.parser import ParsedDiff, serialize_diff
from threadlines.diff.slim import slim_diff
from threadlines.evaluation.provider import EvaluationProvider, EvaluationRequest, EvaluationResponse
from threadlines.models.diff import DiffResult
from threadlines.models.result import (
    CheckReport,
    ErrorDetail,
    Stopwatch,
    TaskResult,
    TaskStatus,
)
from threadlines.models.threadline import Threadline
from threadlines.rules.patterns import match_files


def _match_reference(reference: str, allowed: set) -> Optional[str]:
    """Map a model-returned path (maybe with :line or a/ b/ prefixes) onto a sent file."""
    path = reference.strip()
    candidates = [path, path.split(":", 1)[0]]
    for candidate in list(candidates):
        for prefix in ("./", "a/", "b/"):
            if candidate.startswith(prefix):
                candidates.append(candidate[len(prefix):])
    for candidate in candidates:
        if candidate in allowed:
            return candidate
    return None


class ThreadlineDispatcher:
    """
    Evaluate every threadline against the files it cares about.

    Threadlines whose patterns match no changed file resolve immediately as
    not relevant. The rest are filtered, slimmed and sent to the provider as
    independent tasks started together. Each task has its own deadline; a
    timeout or provider failure becomes that threadline's error result and
    never affects the others.
    """

    def __init__(
        self,
        provider: EvaluationProvider,
        *,
        root: Path,
        diff_context_lines: int = 10,
        task_timeout_seconds: float = 40.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.provider = provider
        self.root = Path(root)
        self.diff_context_lines = diff_context_lines
        self.task_timeout_seconds = task_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    async def dispatch(self, threadlines: Sequence[Threadline], diff_result: DiffResult) -> CheckReport:
        """Evaluate all threadlines; results come back in threadline order."""
        start = time.monotonic()
        parsed = diff_result.parsed
        results = await asyncio.gather(
            *(self._run_one(threadline, diff_result, parsed) for threadline in threadlines)
        )
        report = CheckReport(
            results=list(results),
            duration_ms=int((time.monotonic() - start) * 1000),
            model=getattr(self.provider, "model", None),
        )
        if report.timed_out or report.errors:
            self.logger.warning(
                "Completed: %d, Timed out: %d, Errors: %d",
                report.completed,
                report.timed_out,
                report.errors,
            )
        return report

    def prepare(self, threadline: Threadline, diff_result: DiffResult, parsed: ParsedDiff) -> Tuple[List[str], str, Tuple[str, ...]]:
        """
        Select, filter and slim the diff for one threadline.

        Returns:
            Tuple of (matching paths, slimmed diff text, paths present in that diff)
        """
        relevant = match_files(diff_result.changed_files, threadline.patterns)
        if not relevant or not diff_result.has_content:
            return relevant, "", ()
        slimmed = slim_diff(filter_diff_by_files(parsed, relevant), self.diff_context_lines)
        return relevant, serialize_diff(slimmed), tuple(slimmed.changed_files)

    async def _read_context_files(self, threadline: Threadline) -> Dict[str, str]:
        contents: Dict[str, str] = {}
        for relative in threadline.context_files:
            try:
                contents[relative] = await asyncio.to_thread(
                    (self.root / relative).read_text, encoding="utf-8", errors="replace"
                )
            except OSError as exc:
                self.logger.warning("Context file %s for %s unreadable: %s", relative, threadline.id, exc)
        return contents

    async def _evaluate(self, threadline: Threadline, diff_text: str, files: Tuple[str, ...]) -> EvaluationResponse:
        context_contents = await self._read_context_files(threadline)
        request = EvaluationRequest(
            threadline=threadline,
            diff=diff_text,
            files=files,
            context_contents=context_contents,
        )
        return await self.provider.evaluate(request)

    def _validated_references(self, threadline: Threadline, response: EvaluationResponse, files: Tuple[str, ...]) -> Tuple[str, ...]:
        allowed = set(files)
        kept: List[str] = []
        for reference in response.file_references:
            normalized = _match_reference(reference, allowed)
            if normalized is not None:
                if normalized not in kept:
                    kept.append(normalized)
            else:
                self.logger.warning(
                    "Discarding file reference %r from %s: not among the files sent", reference, threadline.id
                )
        if response.status == TaskStatus.ATTENTION.value and not kept:
            self.logger.error("%s returned attention without any valid file references", threadline.id)
        return tuple(kept)

    async def _run_one(self, threadline: Threadline, diff_result: DiffResult, parsed: ParsedDiff) -> TaskResult:
        relevant, diff_text, files = self.prepare(threadline, diff_result, parsed)
        if not relevant:
            return TaskResult(
                threadline_id=threadline.id,
                status=TaskStatus.NOT_RELEVANT,
                reasoning="No changed files match this threadline's patterns.",
                timing=Stopwatch().stop(),
            )
        if not files:
            return TaskResult(
                threadline_id=threadline.id,
                status=TaskStatus.NOT_RELEVANT,
                reasoning="Matching files changed, but without any line changes to review.",
                relevant_files=tuple(relevant),
                timing=Stopwatch().stop(),
            )

        stopwatch = Stopwatch()
        self.logger.debug("Dispatching %s for %d file(s)", threadline.id, len(files))
        task = asyncio.create_task(self._evaluate(threadline, diff_text, files))
        done, _ = await asyncio.wait({task}, timeout=self.task_timeout_seconds)
        if not done:
            # The losing call is abandoned, not awaited; its outcome is discarded.
            task.add_done_callback(self._make_abandoned_reaper(threadline.id))
            task.cancel()
            message = f"Evaluation timed out after {self.task_timeout_seconds}s"
            self.logger.warning("%s: %s", threadline.id, message)
            return self._error_result(threadline, files, diff_text, stopwatch, "timeout", message)
        try:
            response = task.result()
        except Exception as exc:
            kind = getattr(exc, "kind", "provider")
            message = f"{type(exc).__name__}: {exc}"
            self.logger.warning("%s failed: %s", threadline.id, message)
            return self._error_result(threadline, files, diff_text, stopwatch, kind, message)

        return TaskResult(
            threadline_id=threadline.id,
            status=TaskStatus(response.status),
            reasoning=response.reasoning,
            file_references=self._validated_references(threadline, response, files),
            relevant_files=files,
            filtered_diff=diff_text,
            timing=stopwatch.stop(),
        )

    def _make_abandoned_reaper(self, threadline_id: str):
        def reap(task: asyncio.Task) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                self.logger.debug("Abandoned evaluation of %s failed late: %s", threadline_id, exc)
            else:
                self.logger.debug("Discarding late result for %s", threadline_id)

        return reap

    def _error_result(
        self,
        threadline: Threadline,
        files: Tuple[str, ...],
        diff_text: str,
        stopwatch: Stopwatch,
        kind: str,
        message: str,
    ) -> TaskResult:
        return TaskResult(
            threadline_id=threadline.id,
            status=TaskStatus.ERROR,
            reasoning=f"Error: {message}",
            relevant_files=files,
            filtered_diff=diff_text,
            timing=stopwatch.stop(),
            error=ErrorDetail(kind=kind, message=message),
        )
