"""
Threadlines - check code changes against natural-language rules
"""

from threadlines.diff.parser import ParsedDiff, parse_unified_diff, serialize_diff
from threadlines.diff.source import DiffResult, DiffSourceResolver
from threadlines.models.result import CheckReport, TaskResult, TaskStatus
from threadlines.models.threadline import Threadline
from threadlines.scanner.dispatcher import ThreadlineDispatcher

__version__ = "0.1.0"

__all__ = [
    "CheckReport",
    "DiffResult",
    "DiffSourceResolver",
    "ParsedDiff",
    "TaskResult",
    "TaskStatus",
    "Threadline",
    "ThreadlineDispatcher",
    "parse_unified_diff",
    "serialize_diff",
]
