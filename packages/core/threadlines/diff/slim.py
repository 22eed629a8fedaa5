"""Trim unchanged context around changes in a parsed diff."""

from __future__ import annotations

from typing import List, Optional, Set

from threadlines.diff.parser import (
    DiffFile,
    DiffHunk,
    ParsedDiff,
    format_hunk_header,
    parse_unified_diff,
    serialize_diff,
)


def _retained_indices(hunk: DiffHunk, context_lines: int) -> List[int]:
    lines = hunk.lines
    last = len(lines) - 1
    keep: Set[int] = set()
    for idx, line in enumerate(lines):
        if not line.is_change:
            continue
        keep.update(range(max(0, idx - context_lines), min(last, idx + context_lines) + 1))

    # "\ No newline" markers belong to the line before them
    for idx, line in enumerate(lines):
        if not line.is_no_newline_marker:
            continue
        if idx > 0 and (idx - 1) in keep:
            keep.add(idx)
        else:
            keep.discard(idx)
    return sorted(keep)


def slim_hunk(hunk: DiffHunk, context_lines: int) -> Optional[DiffHunk]:
    """Return the hunk narrowed to ``context_lines`` around each change, or None."""
    if not hunk.has_changes:
        return None

    retained = _retained_indices(hunk, context_lines)
    first = retained[0]
    skipped = hunk.lines[:first]
    kept = [hunk.lines[idx] for idx in retained]

    old_start = hunk.old_start + sum(1 for line in skipped if line.counts_toward_old)
    new_start = hunk.new_start + sum(1 for line in skipped if line.counts_toward_new)
    old_count = sum(1 for line in kept if line.counts_toward_old)
    new_count = sum(1 for line in kept if line.counts_toward_new)

    return DiffHunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        section=hunk.section,
        lines=kept,
        header=format_hunk_header(old_start, old_count, new_start, new_count, hunk.section),
    )


def slim_diff(parsed: ParsedDiff, context_lines: int) -> ParsedDiff:
    """
    Keep only ``context_lines`` lines of context around every change.

    Hunks without any added or removed line are dropped, and so are file
    sections left with no hunks. The input is not modified.

    Raises:
        ValueError: If ``context_lines`` is negative
    """
    if context_lines < 0:
        raise ValueError(f"context_lines must be non-negative, got {context_lines}")

    files: List[DiffFile] = []
    for diff_file in parsed.files:
        hunks = [
            slimmed
            for slimmed in (slim_hunk(hunk, context_lines) for hunk in diff_file.hunks)
            if slimmed is not None
        ]
        if not hunks:
            continue
        files.append(
            DiffFile(
                header_lines=list(diff_file.header_lines),
                hunks=hunks,
                old_path=diff_file.old_path,
                new_path=diff_file.new_path,
                is_new=diff_file.is_new,
                is_deleted=diff_file.is_deleted,
                is_renamed=diff_file.is_renamed,
                is_binary=diff_file.is_binary,
            )
        )

    return ParsedDiff(
        files=files,
        preamble=list(parsed.preamble) if files else [],
        ends_with_newline=parsed.ends_with_newline,
    )


def slim_diff_text(diff_text: str, context_lines: int) -> str:
    """Text-in, text-out convenience around ``slim_diff``."""
    return serialize_diff(slim_diff(parse_unified_diff(diff_text), context_lines))
