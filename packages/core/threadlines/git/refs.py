"""Git ref validation."""

import re

# Allows word characters, dots, slashes, hyphens, plus signs, at-signs, and
# ~/^ for ancestry suffixes. Blocks shell metacharacters and whitespace.
GIT_REF_PATTERN = re.compile(r"^[\w./@^~+-]+$")
SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{4,64}$")


def validate_git_ref(ref: str) -> str:
    """Validate a single git ref before it reaches a git command line.

    Args:
        ref: Branch name, tag, or commit sha

    Returns:
        The ref, unchanged

    Raises:
        ValueError: If the ref is empty, option-like, a range, or has invalid characters
    """
    if not ref:
        raise ValueError("Git ref cannot be empty")
    if ref.startswith("-"):
        raise ValueError(f"Invalid git ref: {ref!r} (option-style refs are not allowed)")
    if ".." in ref:
        raise ValueError(f"Invalid git ref: {ref!r} (ranges are not allowed here)")
    if not GIT_REF_PATTERN.match(ref):
        raise ValueError(f"Invalid git ref: {ref!r} (contains invalid characters)")
    if ref.endswith("/") or ref.endswith(".lock") or "//" in ref:
        raise ValueError(f"Invalid git ref: {ref!r} (malformed ref name)")
    return ref


def is_commit_sha(value: str) -> bool:
    return bool(SHA_PATTERN.match(value))
