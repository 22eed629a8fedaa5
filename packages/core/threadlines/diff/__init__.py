"""Unified diff parsing, slimming and filtering."""

from threadlines.diff.parser import (
    DiffFile,
    DiffHunk,
    DiffLine,
    LineKind,
    ParsedDiff,
    parse_unified_diff,
    serialize_diff,
)
from threadlines.diff.slim import slim_diff, slim_diff_text
from threadlines.diff.filter import extract_files_from_diff, filter_diff_by_files

__all__ = [
    "DiffFile",
    "DiffHunk",
    "DiffLine",
    "LineKind",
    "ParsedDiff",
    "parse_unified_diff",
    "serialize_diff",
    "slim_diff",
    "slim_diff_text",
    "extract_files_from_diff",
    "filter_diff_by_files",
]
