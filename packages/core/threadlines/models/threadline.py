"""Threadline rule documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from pydantic import BaseModel, Field, field_validator

VERSION_RE = re.compile(r"^\d+\.\d+\.\d+")


class ThreadlineFrontmatter(BaseModel):
    """YAML frontmatter at the top of a threadline file."""

    id: str = Field(..., description="Unique threadline identifier")
    version: str = Field(..., description="Semantic version of the rule text")
    patterns: List[str] = Field(..., min_length=1, description="Globs selecting the files it applies to")
    context_files: List[str] = Field(default_factory=list, description="Extra files sent as context")

    @field_validator('id')
    @classmethod
    def id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("id must not be empty")
        return v

    @field_validator('version', mode='before')
    @classmethod
    def version_is_semver(cls, v):
        v = str(v).strip()
        if not VERSION_RE.match(v):
            raise ValueError(f"version must look like 1.0.0, got {v!r}")
        return v

    @field_validator('patterns', 'context_files')
    @classmethod
    def entries_not_blank(cls, v: List[str]) -> List[str]:
        cleaned = [item.strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError("entries must be non-empty strings")
        return cleaned


@dataclass(frozen=True)
class Threadline:
    """A loaded rule document; read-only once loaded."""

    id: str
    version: str
    patterns: Tuple[str, ...]
    content: str
    file_path: str
    context_files: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "version": self.version,
            "patterns": list(self.patterns),
            "content": self.content,
            "file_path": self.file_path,
            "context_files": list(self.context_files),
        }
