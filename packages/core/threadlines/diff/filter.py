"""Restrict a parsed diff to a subset of files."""

from __future__ import annotations

from typing import Iterable, List

from threadlines.diff.parser import ParsedDiff, parse_unified_diff, serialize_diff


def filter_diff_by_files(parsed: ParsedDiff, include_paths: Iterable[str]) -> ParsedDiff:
    """
    Keep the file sections whose path is in ``include_paths``.

    Section order is preserved. An empty include set yields an empty diff;
    the full path set yields a diff that serializes identically to the input.
    """
    wanted = set(include_paths)
    if not wanted:
        return ParsedDiff(files=[], preamble=[], ends_with_newline=parsed.ends_with_newline)

    files = [diff_file for diff_file in parsed.files if diff_file.path in wanted]
    return ParsedDiff(
        files=files,
        preamble=list(parsed.preamble) if files else [],
        ends_with_newline=parsed.ends_with_newline,
    )


def filter_diff_text_by_files(diff_text: str, include_paths: Iterable[str]) -> str:
    return serialize_diff(filter_diff_by_files(parse_unified_diff(diff_text), include_paths))


def extract_files_from_diff(parsed: ParsedDiff) -> List[str]:
    """Paths of every file section, in order of first appearance."""
    return parsed.changed_files
