"""Tests for building new-file diffs from files on disk."""

import os

import pytest

from threadlines.diff.parser import parse_unified_diff
from threadlines.diff.synthetic import (
    SYMLINK_MODE,
    build_added_file_diff,
    build_added_files_diff,
    collect_file,
    collect_folder,
    read_text_file,
)
from threadlines.errors import RepositoryStateError

from conftest import requires_symlinks


def test_added_file_diff_with_trailing_newline():
    text = build_added_file_diff("src/a.py", "one\ntwo\n")

    assert text == (
        "diff --git a/src/a.py b/src/a.py\n"
        "new file mode 100644\n"
        "--- /dev/null\n"
        "+++ b/src/a.py\n"
        "@@ -0,0 +1,2 @@\n"
        "+one\n"
        "+two\n"
    )


def test_added_file_diff_without_trailing_newline():
    text = build_added_file_diff("a.py", "only")

    assert text.endswith("@@ -0,0 +1,1 @@\n+only\n\\ No newline at end of file\n")
    hunk = parse_unified_diff(text).files[0].hunks[0]
    assert hunk.new_count == sum(1 for line in hunk.lines if line.counts_toward_new)


def test_added_file_diff_for_empty_and_binary_files():
    empty = parse_unified_diff(build_added_file_diff("empty.txt", ""))
    binary = parse_unified_diff(build_added_file_diff("logo.png", None))

    assert empty.changed_files == ["empty.txt"]
    assert empty.files[0].is_new and empty.files[0].hunks == []
    assert binary.files[0].is_binary
    assert binary.changed_files == ["logo.png"]


def test_read_text_file_detects_binary(tmp_path):
    text_file = tmp_path / "a.txt"
    text_file.write_text("hello\n", encoding="utf-8")
    binary_file = tmp_path / "b.bin"
    binary_file.write_bytes(b"\x89PNG\x00\x01")

    assert read_text_file(text_file) == "hello\n"
    assert read_text_file(binary_file) is None


def test_collect_file_errors(tmp_path):
    (tmp_path / "dir").mkdir()

    with pytest.raises(RepositoryStateError, match="File 'nope.py' not found"):
        collect_file(tmp_path, "nope.py")
    with pytest.raises(RepositoryStateError, match="is not a file"):
        collect_file(tmp_path, "dir")


def test_collect_folder_walks_sorted_and_skips_excluded(tmp_path):
    src = tmp_path / "src"
    (src / "pkg").mkdir(parents=True)
    (src / "node_modules").mkdir()
    (src / "b.py").write_text("b\n")
    (src / "a.py").write_text("a\n")
    (src / "pkg" / "c.py").write_text("c\n")
    (src / "node_modules" / "dep.js").write_text("x\n")

    found = collect_folder(tmp_path, "src")

    assert [p.relative_to(tmp_path).as_posix() for p in found] == [
        "src/a.py",
        "src/b.py",
        "src/pkg/c.py",
    ]


def test_collect_folder_errors(tmp_path):
    (tmp_path / "empty").mkdir()

    with pytest.raises(RepositoryStateError, match="Folder 'missing' not found"):
        collect_folder(tmp_path, "missing")
    with pytest.raises(RepositoryStateError, match="No files found in folder 'empty'"):
        collect_folder(tmp_path, "empty")


def test_build_added_files_diff_uses_relative_paths(tmp_path):
    (tmp_path / "a.py").write_text("x = 1\n")
    (tmp_path / "b.py").write_text("y = 2\n")

    text, paths = build_added_files_diff(
        tmp_path, [tmp_path / "a.py", tmp_path / "b.py", tmp_path / "a.py"]
    )

    assert paths == ["a.py", "b.py"]
    assert parse_unified_diff(text).changed_files == ["a.py", "b.py"]
    assert parse_unified_diff(text).added_lines == 2


def test_symlink_section_records_link_target():
    text = build_added_file_diff("alias.ts", "real.ts", SYMLINK_MODE)

    assert text == (
        "diff --git a/alias.ts b/alias.ts\n"
        "new file mode 120000\n"
        "--- /dev/null\n"
        "+++ b/alias.ts\n"
        "@@ -0,0 +1,1 @@\n"
        "+real.ts\n"
        "\\ No newline at end of file\n"
    )


@requires_symlinks
def test_build_added_files_diff_keeps_symlink_names(tmp_path):
    (tmp_path / "real.ts").write_text("export const r = 1;\n")
    os.symlink("real.ts", tmp_path / "alias.ts")
    os.symlink("does-not-exist", tmp_path / "dangling.ts")

    text, paths = build_added_files_diff(
        tmp_path, [tmp_path / "alias.ts", tmp_path / "dangling.ts", tmp_path / "real.ts"]
    )

    assert paths == ["alias.ts", "dangling.ts", "real.ts"]
    parsed = parse_unified_diff(text)
    assert parsed.changed_files == ["alias.ts", "dangling.ts", "real.ts"]
    assert text.count("new file mode 120000") == 2
    assert "+real.ts\n\\ No newline at end of file\n" in text
    assert "+does-not-exist\n" in text
    assert "+export const r = 1;\n" in text


@requires_symlinks
def test_collect_file_accepts_dangling_symlink(tmp_path):
    os.symlink("gone.py", tmp_path / "link.py")

    assert collect_file(tmp_path, "link.py") == tmp_path / "link.py"


@requires_symlinks
def test_folder_symlinks_out_of_root_stay_relative(tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.py").write_text("token = 1\n")
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.py").write_text("a = 1\n")
    os.symlink(outside / "secret.py", root / "src" / "link.py")
    os.symlink(outside, root / "src" / "linkdir")

    files = collect_folder(root, "src")
    text, paths = build_added_files_diff(root, files)

    assert paths == ["src/a.py", "src/link.py", "src/linkdir"]
    assert f"+{outside / 'secret.py'}\n" in text
    assert "token = 1" not in text
