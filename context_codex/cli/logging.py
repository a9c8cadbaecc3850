"""CLI logging configuration with file output.

Provides a shared ``configure_cli_logging`` function that sets up file
logging for CLI commands. Log files are split by command under
``~/.local/share/context-codex/logs/`` (override with the
``CONTEXT_CODEX_LOG_DIR`` environment variable).

Usage from any CLI command::

    from context_codex.cli.logging import configure_cli_logging

    configure_cli_logging("learn", verbose=verbose)

Follow a run live with::

    tail -f ~/.local/share/context-codex/logs/learn.log
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "context-codex" / "logs"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed."""
    env = os.environ.get("CONTEXT_CODEX_LOG_DIR")
    log_dir = Path(env).expanduser() if env else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file(command: str) -> Path:
    """Return the log file path for a given CLI command."""
    return get_log_dir() / f"{command}.log"


def configure_cli_logging(
    command: str,
    *,
    verbose: bool = False,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command with file output.

    Sets up a DEBUG-level rotating log at
    ``<log dir>/<command>.log`` on the ``context_codex`` logger. Console
    output is left to the command (rich display or ``logging.basicConfig``).

    Args:
        command: CLI command name (e.g., "learn")
        verbose: Also log the worker-level DEBUG detail of the scheduler
        file_level: File log level (default: DEBUG)
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated backups to keep

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command)

    package_logger = logging.getLogger("context_codex")

    # Repeated calls (tests, nested commands) must not stack handlers
    for handler in package_logger.handlers[:]:
        if isinstance(handler, (RotatingFileHandler, logging.FileHandler)):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    package_logger.addHandler(file_handler)

    # NOTSET inherits WARNING from the root logger
    if package_logger.level == logging.NOTSET or package_logger.level > file_level:
        package_logger.setLevel(file_level)

    scheduler_logger = logging.getLogger("context_codex.learn.scheduler")
    scheduler_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    return log_file
