"""Unified diff parsing and serialization."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import List, Optional, Tuple

from threadlines.errors import ParseError


HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)"
    r"(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)
FILE_HEADER_PREFIX = "diff --git "
NO_NEWLINE_MARKER = "\\"

_QUOTED_PAIR_RE = re.compile(r'^"((?:[^"\\]|\\.)*)" "((?:[^"\\]|\\.)*)"$')
_PLAIN_PAIR_RE = re.compile(r"^(a/.+?) (b/.+)$")
_OCTAL_ESCAPE_RE = re.compile(r"\\([0-7]{3})")
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\", "a": "\a", "b": "\b", "f": "\f", "r": "\r", "v": "\v"}


class LineKind(str, Enum):
    """Kind of a line inside a hunk, decided by its leading marker."""

    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass
class DiffLine:
    """A single hunk line; ``text`` keeps the raw line including its marker."""

    kind: LineKind
    text: str

    @classmethod
    def from_raw(cls, text: str) -> "DiffLine":
        if text.startswith("+"):
            return cls(LineKind.ADDED, text)
        if text.startswith("-"):
            return cls(LineKind.REMOVED, text)
        return cls(LineKind.CONTEXT, text)

    @property
    def is_change(self) -> bool:
        return self.kind is not LineKind.CONTEXT

    @property
    def is_no_newline_marker(self) -> bool:
        return self.text.startswith(NO_NEWLINE_MARKER)

    @property
    def counts_toward_old(self) -> bool:
        if self.kind is LineKind.ADDED:
            return False
        return not self.is_no_newline_marker

    @property
    def counts_toward_new(self) -> bool:
        if self.kind is LineKind.REMOVED:
            return False
        return not self.is_no_newline_marker

    @property
    def content(self) -> str:
        """Line text without its diff marker."""
        if self.text[:1] in ("+", "-", " "):
            return self.text[1:]
        return self.text


@dataclass
class DiffHunk:
    """Represents a diff hunk."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""
    lines: List[DiffLine] = field(default_factory=list)
    header: str = ""

    def __post_init__(self) -> None:
        if not self.header:
            self.header = format_hunk_header(
                self.old_start, self.old_count, self.new_start, self.new_count, self.section
            )

    @property
    def has_changes(self) -> bool:
        return any(line.is_change for line in self.lines)


@dataclass
class DiffFile:
    """One ``diff --git`` section: its header lines and hunks."""

    header_lines: List[str]
    hunks: List[DiffHunk] = field(default_factory=list)
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    is_new: bool = False
    is_deleted: bool = False
    is_renamed: bool = False
    is_binary: bool = False

    @property
    def path(self) -> Optional[str]:
        """The post-change path, or the removed path for deletions."""
        return self.new_path or self.old_path

    def lines(self) -> List[str]:
        out = list(self.header_lines)
        for hunk in self.hunks:
            out.append(hunk.header)
            out.extend(line.text for line in hunk.lines)
        return out


@dataclass
class ParsedDiff:
    """Parsed diff with summary statistics."""

    files: List[DiffFile] = field(default_factory=list)
    preamble: List[str] = field(default_factory=list)
    ends_with_newline: bool = True

    @property
    def changed_files(self) -> List[str]:
        seen = set()
        paths: List[str] = []
        for diff_file in self.files:
            path = diff_file.path
            if not path or path in seen:
                continue
            seen.add(path)
            paths.append(path)
        return paths

    @property
    def added_lines(self) -> int:
        return sum(
            1
            for f in self.files
            for h in f.hunks
            for line in h.lines
            if line.kind is LineKind.ADDED
        )

    @property
    def removed_lines(self) -> int:
        return sum(
            1
            for f in self.files
            for h in f.hunks
            for line in h.lines
            if line.kind is LineKind.REMOVED
        )

    @property
    def is_empty(self) -> bool:
        return not self.files and not any(self.preamble)

    def to_json(self) -> dict:
        """Serialize parsed diff to JSON-safe dict."""
        return {
            "files": [
                {
                    "path": f.path,
                    "old_path": f.old_path,
                    "new_path": f.new_path,
                    "is_new": f.is_new,
                    "is_deleted": f.is_deleted,
                    "is_renamed": f.is_renamed,
                    "is_binary": f.is_binary,
                    "hunks": [
                        {
                            "old_start": h.old_start,
                            "old_count": h.old_count,
                            "new_start": h.new_start,
                            "new_count": h.new_count,
                            "section": h.section,
                            "lines": [
                                {"kind": line.kind.value, "text": line.text}
                                for line in h.lines
                            ],
                        }
                        for h in f.hunks
                    ],
                }
                for f in self.files
            ],
            "added_lines": self.added_lines,
            "removed_lines": self.removed_lines,
            "changed_files": self.changed_files,
        }


def format_hunk_header(
    old_start: int, old_count: int, new_start: int, new_count: int, section: str = ""
) -> str:
    return f"@@ -{old_start},{old_count} +{new_start},{new_count} @@{section}"


def _unquote_git_path(value: str) -> str:
    """Decode a C-style quoted path body as git emits it for unusual names."""
    raw = bytearray()
    i = 0
    while i < len(value):
        match = _OCTAL_ESCAPE_RE.match(value, i)
        if match:
            raw.append(int(match.group(1), 8))
            i = match.end()
            continue
        char = value[i]
        if char == "\\" and i + 1 < len(value):
            raw.extend(_SIMPLE_ESCAPES.get(value[i + 1], value[i + 1]).encode("utf-8"))
            i += 2
            continue
        raw.extend(char.encode("utf-8"))
        i += 1
    return raw.decode("utf-8", errors="replace")


def _strip_diff_prefix(path: str) -> Optional[str]:
    path = path.split("\t", 1)[0].rstrip("\r")
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        path = _unquote_git_path(path[1:-1])
    if path.startswith("a/") or path.startswith("b/"):
        path = path[2:]
    if path in ("/dev/null", "dev/null"):
        return None
    return path or None


def _plain_path(path: str) -> Optional[str]:
    path = path.rstrip("\r")
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        path = _unquote_git_path(path[1:-1])
    return path or None


def _parse_git_header_paths(line: str) -> Tuple[Optional[str], Optional[str]]:
    rest = line[len(FILE_HEADER_PREFIX):].rstrip("\r")

    quoted = _QUOTED_PAIR_RE.match(rest)
    if quoted:
        return (
            _strip_diff_prefix(_unquote_git_path(quoted.group(1))),
            _strip_diff_prefix(_unquote_git_path(quoted.group(2))),
        )

    # Unrenamed paths with spaces: "a/<p> b/<p>" splits evenly
    if rest.startswith("a/") and len(rest) % 2 == 1:
        half = (len(rest) - 1) // 2
        left, right = rest[:half], rest[half + 1:]
        if rest[half] == " " and right.startswith("b/") and left[2:] == right[2:]:
            return _strip_diff_prefix(left), _strip_diff_prefix(right)

    plain = _PLAIN_PAIR_RE.match(rest)
    if plain:
        return _strip_diff_prefix(plain.group(1)), _strip_diff_prefix(plain.group(2))
    return None, None


def _apply_header_line(diff_file: DiffFile, line: str) -> None:
    if line.startswith("new file mode"):
        diff_file.is_new = True
    elif line.startswith("deleted file mode"):
        diff_file.is_deleted = True
    elif line.startswith("rename from "):
        diff_file.old_path = _plain_path(line[len("rename from "):]) or diff_file.old_path
        diff_file.is_renamed = True
    elif line.startswith("rename to "):
        diff_file.new_path = _plain_path(line[len("rename to "):]) or diff_file.new_path
        diff_file.is_renamed = True
    elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
        diff_file.is_binary = True
    elif line.startswith("--- "):
        old_path = _strip_diff_prefix(line[4:])
        if old_path is None:
            diff_file.is_new = True
        else:
            diff_file.old_path = old_path
    elif line.startswith("+++ "):
        new_path = _strip_diff_prefix(line[4:])
        if new_path is None:
            diff_file.is_deleted = True
            diff_file.new_path = None
        else:
            diff_file.new_path = new_path


def _parse_hunk_header(line: str, line_number: int) -> DiffHunk:
    match = HUNK_HEADER_RE.match(line)
    if not match:
        raise ParseError(f"malformed hunk header: {line!r}", line_number)
    old_count = match.group("old_count")
    new_count = match.group("new_count")
    return DiffHunk(
        old_start=int(match.group("old_start")),
        old_count=int(old_count) if old_count is not None else 1,
        new_start=int(match.group("new_start")),
        new_count=int(new_count) if new_count is not None else 1,
        section=match.group("section"),
        header=line,
    )


def parse_unified_diff(diff_content: str) -> ParsedDiff:
    """Parse unified diff content into file sections.

    Args:
        diff_content: Git diff output string.

    Returns:
        ParsedDiff whose ``serialize_diff`` output equals ``diff_content``.

    Raises:
        ParseError: On a hunk header outside any file section, or a
            line starting with ``@@`` that is not a valid hunk header.
    """
    if not diff_content:
        return ParsedDiff(files=[], preamble=[], ends_with_newline=False)

    raw_lines = diff_content.split("\n")
    ends_with_newline = raw_lines[-1] == ""
    if ends_with_newline:
        raw_lines.pop()

    parsed = ParsedDiff(files=[], preamble=[], ends_with_newline=ends_with_newline)
    current_file: Optional[DiffFile] = None
    current_hunk: Optional[DiffHunk] = None

    for line_number, line in enumerate(raw_lines, start=1):
        if line.startswith(FILE_HEADER_PREFIX):
            old_path, new_path = _parse_git_header_paths(line)
            current_file = DiffFile(header_lines=[line], old_path=old_path, new_path=new_path)
            parsed.files.append(current_file)
            current_hunk = None
            continue

        if line.startswith("@@"):
            if current_file is None:
                raise ParseError("hunk header before any file section", line_number)
            current_hunk = _parse_hunk_header(line, line_number)
            current_file.hunks.append(current_hunk)
            continue

        if current_file is None:
            parsed.preamble.append(line)
            continue

        if current_hunk is None:
            current_file.header_lines.append(line)
            _apply_header_line(current_file, line)
            continue

        current_hunk.lines.append(DiffLine.from_raw(line))

    return parsed


def serialize_diff(parsed: ParsedDiff) -> str:
    """Render a ParsedDiff back to unified diff text."""
    lines = list(parsed.preamble)
    for diff_file in parsed.files:
        lines.extend(diff_file.lines())
    if not lines:
        return ""
    text = "\n".join(lines)
    if parsed.ends_with_newline:
        text += "\n"
    return text
