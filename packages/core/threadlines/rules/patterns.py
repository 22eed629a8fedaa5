"""Glob matching for threadline file patterns."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Pattern, Sequence


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a path glob.

    ``**/`` matches zero or more directories, ``**`` matches anything,
    ``*`` matches within one path segment, ``?`` matches one non-separator
    character and ``[...]`` is a character class.
    """
    if pattern.startswith("./"):
        pattern = pattern[2:]

    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif char == "*":
            out.append("[^/]*")
            i += 1
        elif char == "?":
            out.append("[^/]")
            i += 1
        elif char == "[":
            search_from = i + 1
            if pattern.startswith("!", search_from):
                search_from += 1
            if pattern.startswith("]", search_from):
                search_from += 1
            end = pattern.find("]", search_from)
            if end == -1:
                out.append(re.escape(char))
                i += 1
                continue
            body = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end + 1
        else:
            out.append(re.escape(char))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def path_matches(path: str, pattern: str) -> bool:
    return bool(glob_to_regex(pattern).match(path))


def match_files(paths: Iterable[str], patterns: Sequence[str]) -> List[str]:
    """Paths matching at least one pattern, in input order."""
    return [path for path in paths if any(path_matches(path, pattern) for pattern in patterns)]
