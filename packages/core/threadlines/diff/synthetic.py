"""Build "all-added" diff sections from file contents on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from threadlines.config import ReviewConfig
from threadlines.errors import RepositoryStateError

logger = logging.getLogger(__name__)

BINARY_SNIFF_BYTES = 8000
REGULAR_FILE_MODE = "100644"
SYMLINK_MODE = "120000"


def build_added_file_diff(path: str, content: Optional[str], mode: str = REGULAR_FILE_MODE) -> str:
    """
    Render ``content`` as a new-file diff section for ``path``.

    ``None`` content renders a binary notice instead of hunks. Empty files
    render a header without hunks, the way git shows them. Symlinks use
    ``SYMLINK_MODE`` with the link target as their only line.
    """
    header = [f"diff --git a/{path} b/{path}", f"new file mode {mode}"]
    if content is None:
        return "\n".join(header + [f"Binary files /dev/null and b/{path} differ"]) + "\n"
    if content == "":
        return "\n".join(header) + "\n"

    body = content.split("\n")
    missing_newline = body[-1] != ""
    if not missing_newline:
        body.pop()

    lines = header + ["--- /dev/null", f"+++ b/{path}", f"@@ -0,0 +1,{len(body)} @@"]
    lines.extend(f"+{line}" for line in body)
    if missing_newline:
        lines.append("\\ No newline at end of file")
    return "\n".join(lines) + "\n"


def read_text_file(file_path: Path) -> Optional[str]:
    """Read a file as text, returning None when it looks binary."""
    data = file_path.read_bytes()
    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        return None
    return data.decode("utf-8", errors="replace")


def read_entry(file_path: Path) -> Tuple[Optional[str], str]:
    """
    Read what git would record for ``file_path``.

    Returns:
        Tuple of (content or None for binary, file mode). A symlink is never
        followed: its content is the link target, without a trailing newline.
    """
    if file_path.is_symlink():
        return os.readlink(file_path), SYMLINK_MODE
    return read_text_file(file_path), REGULAR_FILE_MODE


def _display_path(file_path: Path, root: Path) -> str:
    # The entry itself is never resolved, so a symlink keeps its own name.
    absolute = Path(os.path.abspath(file_path))
    base = Path(os.path.abspath(root))
    try:
        return absolute.relative_to(base).as_posix()
    except ValueError:
        pass
    real_base = Path(os.path.realpath(base))
    try:
        return (Path(os.path.realpath(absolute.parent)) / absolute.name).relative_to(real_base).as_posix()
    except ValueError:
        return Path(os.path.relpath(absolute, base)).as_posix()


def _resolve(root: Path, raw: str) -> Path:
    candidate = Path(raw)
    return candidate if candidate.is_absolute() else root / candidate


def collect_file(root: Path, raw_path: str) -> Path:
    file_path = _resolve(root, raw_path)
    if file_path.is_symlink():
        return file_path
    if not file_path.exists():
        raise RepositoryStateError(f"File '{raw_path}' not found")
    if not file_path.is_file():
        raise RepositoryStateError(f"Path '{raw_path}' is not a file")
    return file_path


def collect_folder(
    root: Path, raw_path: str, excluded_dirs: Optional[Set[str]] = None
) -> List[Path]:
    """Walk a folder recursively, skipping excluded directory names."""
    folder = _resolve(root, raw_path)
    if not folder.exists():
        raise RepositoryStateError(f"Folder '{raw_path}' not found")
    if not folder.is_dir():
        raise RepositoryStateError(f"Path '{raw_path}' is not a folder")

    skip = ReviewConfig.EXCLUDED_DIRS if excluded_dirs is None else excluded_dirs
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(folder):
        kept = sorted(d for d in dirnames if d not in skip)
        # os.walk lists directory symlinks as dirs without descending; git stores them as links.
        links = [d for d in kept if (Path(dirpath) / d).is_symlink()]
        dirnames[:] = [d for d in kept if d not in links]
        for name in sorted([*filenames, *links]):
            found.append(Path(dirpath) / name)

    if not found:
        raise RepositoryStateError(f"No files found in folder '{raw_path}'")
    return found


def build_added_files_diff(
    root: Path, files: Iterable[Path], log: Optional[logging.Logger] = None
) -> Tuple[str, List[str]]:
    """
    Concatenate all-added sections for ``files``.

    Returns:
        Tuple of (diff text, display paths in order)
    """
    log = log or logger
    sections: List[str] = []
    paths: List[str] = []
    seen: Set[str] = set()
    for file_path in files:
        display = _display_path(file_path, root)
        if display in seen:
            continue
        seen.add(display)
        try:
            content, mode = read_entry(file_path)
        except OSError as exc:
            raise RepositoryStateError(f"Cannot read '{display}': {exc}") from exc
        if content is None:
            log.debug("Treating %s as binary", display)
        sections.append(build_added_file_diff(display, content, mode))
        paths.append(display)
    return "".join(sections), paths
