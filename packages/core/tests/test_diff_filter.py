"""Tests for restricting a diff to chosen files."""

from threadlines.diff.filter import (
    extract_files_from_diff,
    filter_diff_by_files,
    filter_diff_text_by_files,
)
from threadlines.diff.parser import parse_unified_diff

from conftest import TWO_FILE_DIFF


def test_filter_keeps_only_requested_sections():
    filtered = filter_diff_text_by_files(TWO_FILE_DIFF, {"b.ts"})

    assert filtered.startswith("diff --git a/b.ts b/b.ts\n")
    assert "a.ts" not in filtered
    assert "+const z = 3;" in filtered


def test_filter_with_all_paths_is_identity():
    assert filter_diff_text_by_files(TWO_FILE_DIFF, {"a.ts", "b.ts"}) == TWO_FILE_DIFF


def test_filter_with_no_paths_is_empty():
    filtered = filter_diff_by_files(parse_unified_diff("preamble\n" + TWO_FILE_DIFF), set())

    assert filtered.files == []
    assert filtered.preamble == []


def test_filter_preserves_section_order():
    filtered = filter_diff_by_files(parse_unified_diff(TWO_FILE_DIFF), ["b.ts", "a.ts"])

    assert filtered.changed_files == ["a.ts", "b.ts"]


def test_unknown_paths_are_ignored():
    assert filter_diff_text_by_files(TWO_FILE_DIFF, {"missing.ts"}) == ""


def test_extract_files_from_diff():
    assert extract_files_from_diff(parse_unified_diff(TWO_FILE_DIFF)) == ["a.ts", "b.ts"]
