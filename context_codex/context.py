"""Load supplementary context files for inclusion in generated documents.

Context files are small markdown or text notes (e.g. ``project-context.md``)
that are prepended to the learn output. Loading is sequential and bounded:
each file is limited to 100 KiB and the whole batch to one second.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_CONTEXT_FILE_SIZE = 100 * 1024
MAX_LOAD_TIME_MS = 1000
VALID_EXTENSIONS = (".md", ".markdown", ".txt")
CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass
class ContextFileResult:
    """Result of loading a single context file."""

    path: str
    success: bool
    content: str | None = None
    size_bytes: int | None = None
    error: str | None = None


@dataclass
class ContextLoadResult:
    """Result of loading all context files."""

    success: bool
    files: list[ContextFileResult] = field(default_factory=list)
    combined_content: str = ""
    total_size_bytes: int = 0
    load_time_ms: int = 0
    errors: list[str] = field(default_factory=list)


def _validate_format(path: Path) -> str | None:
    ext = path.suffix.lower()
    if ext not in VALID_EXTENSIONS:
        return (
            f"Invalid context file format: {ext or '(none)'}. "
            f"Expected {', '.join(VALID_EXTENSIONS)}"
        )
    return None


def load_context_file(file_path: str | Path, cwd: str | Path) -> ContextFileResult:
    """Load one context file, resolving relative paths against ``cwd``."""
    path = Path(file_path)
    if not path.is_absolute():
        path = (Path(cwd) / path).resolve()

    if not path.exists():
        return ContextFileResult(
            path=str(path), success=False, error=f"Context file not found: {path}"
        )

    if format_error := _validate_format(path):
        return ContextFileResult(path=str(path), success=False, error=format_error)

    try:
        size = path.stat().st_size
    except OSError as e:
        return ContextFileResult(
            path=str(path), success=False, error=f"Cannot access context file: {e}"
        )

    if size > MAX_CONTEXT_FILE_SIZE:
        return ContextFileResult(
            path=str(path),
            success=False,
            error=(
                f"Context file too large: {size / 1024:.1f}KB exceeds "
                f"{MAX_CONTEXT_FILE_SIZE // 1024}KB limit"
            ),
        )

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ContextFileResult(
            path=str(path), success=False, error=f"Failed to read context file: {e}"
        )

    return ContextFileResult(
        path=str(path), success=True, content=content, size_bytes=size
    )


def load_context_files(
    file_paths: list[str | Path], cwd: str | Path
) -> ContextLoadResult:
    """Load several context files in order within the time budget."""
    start = time.monotonic()
    results: list[ContextFileResult] = []
    errors: list[str] = []
    contents: list[str] = []
    total_size = 0

    for file_path in file_paths:
        elapsed_ms = (time.monotonic() - start) * 1000
        if elapsed_ms > MAX_LOAD_TIME_MS:
            errors.append(
                f"Context loading timeout: exceeded {MAX_LOAD_TIME_MS}ms limit"
            )
            break

        result = load_context_file(file_path, cwd)
        results.append(result)

        if result.success and result.content:
            contents.append(result.content)
            total_size += result.size_bytes or 0
        elif result.error:
            errors.append(result.error)
            logger.warning(result.error)

    return ContextLoadResult(
        success=bool(results) and all(r.success for r in results),
        files=results,
        combined_content=CONTEXT_SEPARATOR.join(contents),
        total_size_bytes=total_size,
        load_time_ms=int((time.monotonic() - start) * 1000),
        errors=errors,
    )


def format_context_for_prompt(content: str, file_paths: list[str]) -> str:
    """Wrap loaded context with a heading and source attribution."""
    if not content.strip():
        return ""

    if len(file_paths) == 1:
        sources = f"Source: {file_paths[0]}"
    else:
        sources = "Sources:\n" + "\n".join(f"  - {p}" for p in file_paths)

    return f"## Project Context\n\n{sources}\n\n{content}"
