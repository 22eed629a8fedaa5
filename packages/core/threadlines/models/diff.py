"""Diff acquisition result."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable, Optional, Tuple

from threadlines.diff.parser import ParsedDiff, parse_unified_diff

STRATEGY_MERGE_BASE = "merge-base"
STRATEGY_TWO_POINT = "two-point"
STRATEGY_COMMIT = "commit"
STRATEGY_STAGED = "staged"
STRATEGY_UNSTAGED = "unstaged"
STRATEGY_EXPLICIT = "explicit"


def _unique(paths: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            ordered.append(path)
    return tuple(ordered)


@dataclass(frozen=True)
class DiffResult:
    """What changed, as unified diff text plus the ordered list of touched paths.

    ``changed_files`` matches the file sections of ``text`` one to one. When
    ``text`` is empty it may still list paths: files were touched but carry no
    content delta.
    """

    text: str
    changed_files: Tuple[str, ...]
    strategy: str
    base: Optional[str] = None
    head: Optional[str] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def build(
        cls,
        text: str,
        name_only: Iterable[str],
        strategy: str,
        *,
        base: Optional[str] = None,
        head: Optional[str] = None,
        warnings: Iterable[str] = (),
    ) -> "DiffResult":
        """Derive ``changed_files`` from the diff sections, or from ``name_only`` when empty."""
        if text.strip():
            changed = _unique(parse_unified_diff(text).changed_files)
        else:
            text = ""
            changed = _unique(name_only)
        return cls(
            text=text,
            changed_files=changed,
            strategy=strategy,
            base=base,
            head=head,
            warnings=tuple(warnings),
        )

    @cached_property
    def parsed(self) -> ParsedDiff:
        return parse_unified_diff(self.text)

    @property
    def has_content(self) -> bool:
        return bool(self.text)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "base": self.base,
            "head": self.head,
            "changed_files": list(self.changed_files),
            "warnings": list(self.warnings),
        }
