"""Configuration management for threadlines"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from threadlines.errors import ConfigurationError

CONFIG_FILENAME = ".threadlinerc"
DEFAULT_API_URL = "https://devthreadline.com"
DEFAULT_MODEL = "sonnet"

API_KEY_ENV = "THREADLINE_API_KEY"
ACCOUNT_ENV = "THREADLINE_ACCOUNT"


class ReviewConfig:
    """Directory exclusions for explicit folder reviews"""

    EXCLUDED_DIRS = {
        '.git', '.hg', '.svn',        # Version control
        'node_modules', '.yarn',      # Node.js dependencies
        'dist', 'build', '.next',     # Build output
        '__pycache__', '.venv', 'venv', '.tox',
        '.pytest_cache', '.mypy_cache',
        'target', '.gradle',          # JVM / Cargo build
    }


class ThreadlineConfig(BaseModel):
    """Validated contents of ``.threadlinerc`` merged with environment overrides."""

    mode: str = Field("online", description="online syncs results to the API, offline does not")
    api_url: str = Field(DEFAULT_API_URL, description="Base URL of the results API")
    model: str = Field(DEFAULT_MODEL, description="Model used for threadline evaluation")
    diff_context_lines: int = Field(10, ge=0, description="Context lines kept around each change")
    git_context_lines: int = Field(200, ge=0, description="Context lines requested from git diff")
    task_timeout_seconds: float = Field(40.0, gt=0, description="Deadline for one threadline task")
    request_timeout_seconds: float = Field(35.0, gt=0, description="Deadline for one model request")
    branch_fetch_depth: int = Field(50, ge=1, description="History depth when fetching a PR target")
    remote: str = Field("origin", description="Remote used for fetches")

    @field_validator('mode')
    @classmethod
    def normalize_mode(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in ("online", "offline"):
            raise ValueError(f"mode must be 'online' or 'offline', got {v!r}")
        return value

    @field_validator('api_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode='after')
    def request_deadline_inside_task_deadline(self) -> 'ThreadlineConfig':
        if self.request_timeout_seconds >= self.task_timeout_seconds:
            raise ValueError(
                "request_timeout_seconds must be shorter than task_timeout_seconds "
                f"({self.request_timeout_seconds} >= {self.task_timeout_seconds})"
            )
        return self

    @property
    def is_online(self) -> bool:
        return self.mode == "online"


@dataclass(frozen=True)
class Credentials:
    """API credentials read from the environment."""

    api_key: str
    account: str


def _strip_line_comments(text: str) -> str:
    """Drop whole-line ``//`` comments so the remainder parses as JSON."""
    return "\n".join(
        line for line in text.splitlines() if not line.lstrip().startswith("//")
    )


def find_config_file(start: Path, stop: Optional[Path] = None) -> Optional[Path]:
    """
    Walk up from ``start`` looking for ``.threadlinerc``.

    Args:
        start: Directory to begin the search in
        stop: Last directory to check (normally the repository root)

    Returns:
        Path to the config file, or None if none was found
    """
    current = start.resolve()
    stop_dir = stop.resolve() if stop else None
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if stop_dir is not None and current == stop_dir:
            return None
        if current.parent == current:
            return None
        current = current.parent


def _read_config_file(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {path}: {exc}") from exc
    try:
        data = json.loads(_strip_line_comments(raw) or "{}")
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return data


def load_config(
    start: Path,
    *,
    repo_root: Optional[Path] = None,
    model_override: Optional[str] = None,
    mode_override: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ThreadlineConfig:
    """
    Build the effective configuration.

    Priority hierarchy (from highest to lowest):
    1. Environment variables (THREADLINE_MODEL, THREADLINE_API_URL, THREADLINE_MODE)
    2. CLI overrides (--model, --offline)
    3. ``.threadlinerc`` found between ``start`` and ``repo_root``
    4. Defaults

    Raises:
        ConfigurationError: If the file is unreadable or any value is invalid
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    config_path = find_config_file(start, repo_root)
    if config_path is not None:
        data.update(_read_config_file(config_path))

    if model_override:
        data["model"] = model_override
    if mode_override:
        data["mode"] = mode_override

    for key, env_var in (
        ("model", "THREADLINE_MODEL"),
        ("api_url", "THREADLINE_API_URL"),
        ("mode", "THREADLINE_MODE"),
    ):
        value = env.get(env_var)
        if value:
            data[key] = value

    try:
        return ThreadlineConfig(**data)
    except ValidationError as exc:
        source = str(config_path) if config_path else "configuration"
        raise ConfigurationError(f"Invalid {source}: {exc}") from exc


def _env_value(env: Mapping[str, str], name: str) -> Optional[str]:
    value = (env.get(name) or "").strip()
    # An unexpanded "$VAR" literal from a CI template is as good as unset
    if not value or value.startswith("$"):
        return None
    return value


def get_credentials(environ: Optional[Mapping[str, str]] = None) -> Credentials:
    """
    Read API credentials required for online mode.

    Raises:
        ConfigurationError: Listing every missing variable
    """
    env = os.environ if environ is None else environ
    api_key = _env_value(env, API_KEY_ENV)
    account = _env_value(env, ACCOUNT_ENV)

    missing = [name for name, value in ((API_KEY_ENV, api_key), (ACCOUNT_ENV, account)) if not value]
    if missing:
        raise ConfigurationError(
            "Missing required environment variables: "
            + ", ".join(missing)
            + ". Set them in your shell, CI secrets, or .env.local, "
            "or run in offline mode."
        )
    return Credentials(api_key=api_key, account=account)
