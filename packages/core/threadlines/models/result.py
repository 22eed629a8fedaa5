"""Check result data model"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple


class TaskStatus(str, Enum):
    COMPLIANT = "compliant"
    ATTENTION = "attention"
    NOT_RELEVANT = "not_relevant"
    ERROR = "error"


def utc_timestamp() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TaskTiming:
    started_at: str
    finished_at: str
    duration_ms: int

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
        }


class Stopwatch:
    """Wall-clock stamps plus a monotonic duration for one task."""

    def __init__(self):
        self.started_at = utc_timestamp()
        self._start = time.monotonic()

    def stop(self) -> TaskTiming:
        return TaskTiming(
            started_at=self.started_at,
            finished_at=utc_timestamp(),
            duration_ms=int((time.monotonic() - self._start) * 1000),
        )


@dataclass(frozen=True)
class ErrorDetail:
    kind: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class TaskResult:
    """Outcome of evaluating one threadline."""

    threadline_id: str
    status: TaskStatus
    reasoning: str = ""
    file_references: Tuple[str, ...] = ()
    relevant_files: Tuple[str, ...] = ()
    filtered_diff: str = ""
    timing: Optional[TaskTiming] = None
    error: Optional[ErrorDetail] = None

    @property
    def is_failure(self) -> bool:
        return self.status in (TaskStatus.ATTENTION, TaskStatus.ERROR)

    def to_dict(self) -> dict:
        return {
            "threadline_id": self.threadline_id,
            "status": self.status.value,
            "reasoning": self.reasoning,
            "file_references": list(self.file_references),
            "relevant_files": list(self.relevant_files),
            "timing": self.timing.to_dict() if self.timing else None,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class CheckReport:
    """Results for every threadline in a run, in threadline order"""

    results: List[TaskResult] = field(default_factory=list)
    duration_ms: int = 0
    model: Optional[str] = None

    def count(self, status: TaskStatus) -> int:
        return sum(1 for result in self.results if result.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def completed(self) -> int:
        """Results that were produced without an error."""
        return sum(1 for result in self.results if result.status != TaskStatus.ERROR)

    @property
    def timed_out(self) -> int:
        return sum(1 for result in self.results if result.error and result.error.kind == "timeout")

    @property
    def errors(self) -> int:
        """Errors other than timeouts."""
        return self.count(TaskStatus.ERROR) - self.timed_out

    @property
    def has_failures(self) -> bool:
        return any(result.is_failure for result in self.results)

    def summary(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "timed_out": self.timed_out,
            "errors": self.errors,
            "compliant": self.count(TaskStatus.COMPLIANT),
            "attention": self.count(TaskStatus.ATTENTION),
            "not_relevant": self.count(TaskStatus.NOT_RELEVANT),
        }

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary(),
            "duration_ms": self.duration_ms,
            "model": self.model,
        }
