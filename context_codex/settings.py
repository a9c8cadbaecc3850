"""Project settings loaded from pyproject.toml [tool.context-codex] section.

Configuration is organized into subsections:
  [tool.context-codex]        general settings
  [tool.context-codex.learn]  workers, task-timeout, max-retries, max-files,
                              output, sample-resources

All settings support environment variable overrides (CONTEXT_CODEX_* prefix).
"""

import importlib.resources
import os
import tomllib
from functools import cache
from pathlib import Path


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.context-codex] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        # Try package resources first (installed package)
        files = importlib.resources.files("context_codex")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        # If package resource doesn't exist, try filesystem
        if not pyproject_path.is_file():  # type: ignore[union-attr]
            # Walk up to find pyproject.toml (for development)
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        content = pyproject_path.read_text()  # type: ignore[union-attr]
        data = tomllib.loads(content)
        return data.get("tool", {}).get("context-codex", {})
    except Exception:
        return {}


def _get_section(section: str) -> dict:
    """Get a subsection from [tool.context-codex.{section}]."""
    return _load_pyproject_settings().get(section, {})


# ─── Learn settings ────────────────────────────────────────────────────────

DEFAULT_MAX_FILES = 10_000
DEFAULT_MAX_RETRIES = 2
DEFAULT_TASK_TIMEOUT = 60.0
DEFAULT_OUTPUT = Path(".context-codex") / "context.md"


def get_worker_count() -> int:
    """Get the number of concurrent analysis workers.

    Priority: CONTEXT_CODEX_WORKERS env → [learn].workers → min(8, cpu count).
    """
    if env := os.getenv("CONTEXT_CODEX_WORKERS"):
        return int(env)
    if (val := _get_section("learn").get("workers")) is not None:
        return int(val)
    return min(8, os.cpu_count() or 1)


def get_task_timeout() -> float:
    """Get the per-attempt analysis timeout in seconds.

    Priority: CONTEXT_CODEX_TASK_TIMEOUT env → [learn].task-timeout → 60.
    """
    if env := os.getenv("CONTEXT_CODEX_TASK_TIMEOUT"):
        return float(env)
    if (val := _get_section("learn").get("task-timeout")) is not None:
        return float(val)
    return DEFAULT_TASK_TIMEOUT


def get_max_retries() -> int:
    """Get the number of retries allowed after a failed attempt.

    Priority: CONTEXT_CODEX_MAX_RETRIES env → [learn].max-retries → 2.
    """
    if env := os.getenv("CONTEXT_CODEX_MAX_RETRIES"):
        return int(env)
    if (val := _get_section("learn").get("max-retries")) is not None:
        return int(val)
    return DEFAULT_MAX_RETRIES


def get_max_files() -> int:
    """Get the global cap on file entries visited by the partitioner.

    Priority: CONTEXT_CODEX_MAX_FILES env → [learn].max-files → 10000.
    """
    if env := os.getenv("CONTEXT_CODEX_MAX_FILES"):
        return int(env)
    if (val := _get_section("learn").get("max-files")) is not None:
        return int(val)
    return DEFAULT_MAX_FILES


def get_output_path() -> Path:
    """Get the output file path, relative paths resolve against the analyzed root.

    Priority: CONTEXT_CODEX_OUTPUT env → [learn].output → .context-codex/context.md
    """
    if env := os.getenv("CONTEXT_CODEX_OUTPUT"):
        return Path(env)
    if (val := _get_section("learn").get("output")) is not None:
        return Path(val)
    return DEFAULT_OUTPUT


def get_sample_resources() -> bool:
    """Whether to sample process memory/CPU during a run.

    Priority: CONTEXT_CODEX_SAMPLE_RESOURCES env → [learn].sample-resources → True.
    """
    if env := os.getenv("CONTEXT_CODEX_SAMPLE_RESOURCES"):
        return _parse_bool(env)
    if (val := _get_section("learn").get("sample-resources")) is not None:
        return _parse_bool(val)
    return True


def _parse_bool(value: str | bool) -> bool:
    """Parse a boolean value from string or bool."""
    if isinstance(value, bool):
        return value
    return value.lower() in ("true", "1", "yes")
