"""Data models for threadlines"""

from threadlines.models.diff import DiffResult
from threadlines.models.result import CheckReport, ErrorDetail, TaskResult, TaskStatus, TaskTiming
from threadlines.models.threadline import Threadline, ThreadlineFrontmatter

__all__ = [
    "DiffResult",
    "CheckReport",
    "ErrorDetail",
    "TaskResult",
    "TaskStatus",
    "TaskTiming",
    "Threadline",
    "ThreadlineFrontmatter",
]
