"""Load and validate threadline files from ``<repo>/threadlines``."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from threadlines.errors import ConfigurationError, InvalidThreadlineError
from threadlines.models.threadline import Threadline, ThreadlineFrontmatter

THREADLINES_DIR = "threadlines"
FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n(.*))?\Z", re.DOTALL)


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "frontmatter"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def validate_threadline(file_path: Path, repo_root: Path) -> Threadline:
    """
    Parse and validate one threadline file.

    Args:
        file_path: Markdown file with YAML frontmatter
        repo_root: Root that ``context_files`` are resolved against

    Returns:
        The loaded Threadline

    Raises:
        InvalidThreadlineError: Describing the first problem found
    """
    try:
        relative = file_path.relative_to(repo_root).as_posix()
    except ValueError:
        relative = file_path.as_posix()

    try:
        raw = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidThreadlineError(relative, f"cannot read file: {exc}") from exc

    match = FRONTMATTER_RE.match(raw)
    if not match:
        raise InvalidThreadlineError(relative, "missing YAML frontmatter (--- ... ---)")

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise InvalidThreadlineError(relative, f"invalid YAML frontmatter: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidThreadlineError(relative, "frontmatter must be a mapping")

    try:
        meta = ThreadlineFrontmatter(**data)
    except ValidationError as exc:
        raise InvalidThreadlineError(relative, _format_validation_error(exc)) from exc

    body = (match.group(2) or "").strip()
    if not body:
        raise InvalidThreadlineError(relative, "threadline body is empty")

    for context_file in meta.context_files:
        if not (repo_root / context_file).is_file():
            raise InvalidThreadlineError(relative, f"context file not found: {context_file}")

    return Threadline(
        id=meta.id,
        version=meta.version,
        patterns=tuple(meta.patterns),
        content=body,
        file_path=relative,
        context_files=tuple(meta.context_files),
    )


def find_threadlines(repo_root: Path, logger: Optional[logging.Logger] = None) -> List[Threadline]:
    """
    Load every valid threadline under ``<repo_root>/threadlines``.

    Invalid files and duplicate ids are skipped with a warning.

    Raises:
        ConfigurationError: If the folder is missing or holds no valid threadlines
    """
    log = logger or logging.getLogger(__name__)
    folder = repo_root / THREADLINES_DIR
    if not folder.is_dir():
        raise ConfigurationError(
            "No /threadlines folder found. Run `threadlines init` to create your first threadline."
        )

    files = sorted(p for p in folder.glob("*.md") if p.is_file())
    if not files:
        raise ConfigurationError(
            f"No threadline files found in {THREADLINES_DIR}/. "
            "Run `threadlines init` to create an example."
        )

    threadlines: List[Threadline] = []
    seen_ids = {}
    for file_path in files:
        try:
            threadline = validate_threadline(file_path, repo_root)
        except InvalidThreadlineError as exc:
            log.warning("Skipping invalid threadline %s", exc)
            continue
        if threadline.id in seen_ids:
            log.warning(
                "Skipping %s: duplicate id '%s' already defined in %s",
                threadline.file_path,
                threadline.id,
                seen_ids[threadline.id],
            )
            continue
        seen_ids[threadline.id] = threadline.file_path
        threadlines.append(threadline)

    if not threadlines:
        raise ConfigurationError(f"No valid threadlines found in {THREADLINES_DIR}/")

    log.debug("Loaded %d threadline(s)", len(threadlines))
    return threadlines
