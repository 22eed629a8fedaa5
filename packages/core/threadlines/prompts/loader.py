"""Prompt loading utilities for threadlines"""
from pathlib import Path
from string import Template
from typing import Dict, Mapping, Sequence

PROMPTS_DIR = Path(__file__).parent


def load_prompt(name: str) -> str:
    """
    Load a prompt template from file.

    Args:
        name: Prompt name (e.g., "system", "threadline_check")

    Returns:
        Prompt text as string

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    prompt_file = PROMPTS_DIR / f"{name}.txt"

    if not prompt_file.exists():
        raise FileNotFoundError(
            f"Prompt file not found: {prompt_file}\n"
            f"Expected location: threadlines/prompts/{name}.txt"
        )

    return prompt_file.read_text(encoding="utf-8")


def _context_section(context_contents: Mapping[str, str]) -> str:
    if not context_contents:
        return ""
    blocks = "\n\n".join(
        f"--- {path} ---\n{content}" for path, content in context_contents.items()
    )
    return Template(load_prompt("context_files")).substitute(context_files=blocks)


def build_threadline_prompt(
    *,
    threadline_id: str,
    threadline_version: str,
    threadline_content: str,
    diff: str,
    files: Sequence[str],
    context_contents: Mapping[str, str],
) -> str:
    """Fill the threadline check template."""
    values: Dict[str, str] = {
        "threadline_id": threadline_id,
        "threadline_version": threadline_version,
        "threadline_content": threadline_content,
        "context_section": _context_section(context_contents),
        "diff": diff,
        "files": "\n".join(files),
    }
    return Template(load_prompt("threadline_check")).substitute(values)
