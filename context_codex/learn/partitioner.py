"""
Tree partitioner: walks a project directory and emits analysis tasks.

The walk is depth-first over name-sorted entries so repeated runs on an
unchanged tree produce identical task lists. Ignored directories (build
output, dependencies, version control, caches, anything starting with ".")
are never descended into and never counted.

A global cap bounds the number of file entries visited. Hitting the cap is
not an error: the walk stops and the result is marked truncated.

One AnalysisTask is emitted per eligible directory that directly contains at
least one counted file. A directory's task precedes the tasks of its
subdirectories.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from context_codex.learn.errors import PartitionError
from context_codex.learn.models import AnalysisTask, PartitionResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 10_000

# Extension → logical file type. First match wins.
FILE_PATTERNS: dict[str, re.Pattern[str]] = {
    "javascript": re.compile(r"\.(js|mjs|cjs)$"),
    "typescript": re.compile(r"\.(ts|tsx)$"),
    "python": re.compile(r"\.py$"),
    "rust": re.compile(r"\.rs$"),
    "go": re.compile(r"\.go$"),
    "java": re.compile(r"\.java$"),
    "csharp": re.compile(r"\.cs$"),
    "ruby": re.compile(r"\.rb$"),
    "php": re.compile(r"\.php$"),
    "markdown": re.compile(r"\.(md|mdx)$"),
    "json": re.compile(r"\.json$"),
    "yaml": re.compile(r"\.(yaml|yml)$"),
    "toml": re.compile(r"\.toml$"),
    "html": re.compile(r"\.(html|htm)$"),
    "css": re.compile(r"\.(css|scss|sass|less)$"),
}

IGNORED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".hg",
        ".svn",
        "dist",
        "build",
        "out",
        "target",
        "__pycache__",
        ".next",
        ".nuxt",
        ".cache",
        "coverage",
        ".nyc_output",
        "vendor",
        "venv",
        ".venv",
        "env",
        ".env",
    }
)

# Project type → indicator files at the project root ("*" is a wildcard)
PROJECT_INDICATORS: dict[str, tuple[str, ...]] = {
    "node": ("package.json",),
    "python": ("setup.py", "pyproject.toml", "requirements.txt", "Pipfile"),
    "rust": ("Cargo.toml",),
    "go": ("go.mod",),
    "java": ("pom.xml", "build.gradle", "build.gradle.kts"),
    "dotnet": ("*.csproj", "*.sln"),
    "ruby": ("Gemfile",),
    "php": ("composer.json",),
}

AGENT_MARKER = "AGENTS.md"
STRUCTURE_LIMIT = 10


def should_ignore_dir(name: str, ignored_dirs: frozenset[str] = IGNORED_DIRS) -> bool:
    """Check if a directory should be skipped entirely."""
    return name in ignored_dirs or name.startswith(".")


def detect_file_type(filename: str) -> str | None:
    """Map a filename to its logical type, or None if untyped."""
    for file_type, pattern in FILE_PATTERNS.items():
        if pattern.search(filename):
            return file_type
    return None


def detect_project_types(top_level_files: list[str]) -> list[str]:
    """Detect project type(s) from the names of files at the project root."""
    types: list[str] = []
    for project_type, indicators in PROJECT_INDICATORS.items():
        for indicator in indicators:
            if "*" in indicator:
                pattern = re.compile(re.escape(indicator).replace(r"\*", ".*"))
                matched = any(pattern.search(f) for f in top_level_files)
            else:
                matched = indicator in top_level_files
            if matched:
                types.append(project_type)
                break
    return types or ["unknown"]


def detect_conventions(root: Path, top_level_files: list[str]) -> list[str]:
    """Detect tooling conventions from root-level files."""
    files = set(top_level_files)
    conventions: list[str] = []

    if "tsconfig.json" in files:
        conventions.append("TypeScript enabled")
    if any(
        f.startswith("eslint") or f in (".eslintrc", ".eslintrc.js", ".eslintrc.json")
        for f in files
    ):
        conventions.append("ESLint for linting")
    if any(f.startswith(".prettier") or f == "prettier.config.js" for f in files):
        conventions.append("Prettier for formatting")
    if files & {"jest.config.js", "jest.config.ts"}:
        conventions.append("Jest for testing")
    if files & {"vitest.config.ts", "vitest.config.js"}:
        conventions.append("Vitest for testing")
    if files & {"pytest.ini", "conftest.py"}:
        conventions.append("Pytest for testing")
    if (root / ".github" / "workflows").is_dir():
        conventions.append("GitHub Actions for CI/CD")
    if ".gitlab-ci.yml" in files:
        conventions.append("GitLab CI for CI/CD")
    if files & {"Dockerfile", "docker-compose.yml", "docker-compose.yaml"}:
        conventions.append("Docker containerization")
    if AGENT_MARKER in files:
        conventions.append("AGENTS.md for AI guidance")

    return conventions


def build_structure(top_level_dirs: list[str], top_level_files: list[str]) -> list[str]:
    """Short overview of root entries: up to 10 dirs, then up to 10 files."""
    structure = [f"{d}/" for d in top_level_dirs[:STRUCTURE_LIMIT]]
    structure.extend(top_level_files[:STRUCTURE_LIMIT])
    total = len(top_level_dirs) + len(top_level_files)
    if total > 2 * STRUCTURE_LIMIT:
        structure.append(f"... and {total - 2 * STRUCTURE_LIMIT} more")
    return structure


@dataclass
class _FolderTally:
    """Per-directory counts collected during the walk."""

    relative_path: str
    depth: int
    file_count: int = 0
    files_by_type: dict[str, int] = field(default_factory=dict)
    marker_files: list[str] = field(default_factory=list)


class _TreeWalker:
    """Depth-first walk with a global file cap."""

    def __init__(
        self,
        root: Path,
        max_files: int,
        ignored_dirs: frozenset[str],
        marker_names: frozenset[str],
    ) -> None:
        self.root = root
        self.max_files = max_files
        self.ignored_dirs = ignored_dirs
        self.marker_names = marker_names
        self.files = 0
        self.directories = 0
        self.files_by_type: dict[str, int] = {}
        self.agent_files: list[str] = []
        # Directories in the order they were entered
        self.folders: list[_FolderTally] = []

    def walk(self) -> bool:
        """Walk from the root. Returns True if the file cap truncated the walk."""
        return self._scan(self.root, "", 0)

    def _scan(self, dir_path: Path, relative: str, depth: int) -> bool:
        if self.files >= self.max_files:
            return True

        try:
            with os.scandir(dir_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            # Permission denied, vanished directory: skip this branch only
            logger.debug("Skipping unreadable directory %s: %s", dir_path, e)
            return False

        if relative:
            self.directories += 1

        tally = _FolderTally(relative_path=relative or ".", depth=depth)
        self.folders.append(tally)

        for entry in entries:
            if self.files >= self.max_files:
                return True

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file(follow_symlinks=False)
            except OSError:
                continue

            child_relative = f"{relative}/{entry.name}" if relative else entry.name

            if is_dir:
                if should_ignore_dir(entry.name, self.ignored_dirs):
                    continue
                if self._scan(Path(entry.path), child_relative, depth + 1):
                    return True
            elif is_file:
                self.files += 1
                tally.file_count += 1

                file_type = detect_file_type(entry.name)
                if file_type:
                    self.files_by_type[file_type] = (
                        self.files_by_type.get(file_type, 0) + 1
                    )
                    tally.files_by_type[file_type] = (
                        tally.files_by_type.get(file_type, 0) + 1
                    )

                if entry.name in self.marker_names:
                    self.agent_files.append(child_relative)
                    tally.marker_files.append(child_relative)

        return False


def partition_tree(
    root: str | Path,
    *,
    max_files: int = DEFAULT_MAX_FILES,
    ignored_dirs: frozenset[str] = IGNORED_DIRS,
    marker_names: tuple[str, ...] = (AGENT_MARKER,),
) -> PartitionResult:
    """Walk a project tree and produce an ordered list of analysis tasks.

    Args:
        root: Project root directory
        max_files: Global cap on file entries visited
        ignored_dirs: Directory names never descended into
        marker_names: File names recorded wherever they appear (e.g. AGENTS.md)

    Returns:
        PartitionResult with tasks in discovery order plus project overview

    Raises:
        PartitionError: If root does not exist or is not a directory
    """
    root = Path(root).resolve()
    if not root.exists():
        raise PartitionError(f"Path does not exist: {root}")
    if not root.is_dir():
        raise PartitionError(f"Path is not a directory: {root}")

    try:
        with os.scandir(root) as it:
            top_level = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise PartitionError(f"Cannot read directory {root}: {e}") from e

    top_level_files = [e.name for e in top_level if e.is_file(follow_symlinks=False)]
    top_level_dirs = [
        e.name
        for e in top_level
        if e.is_dir(follow_symlinks=False)
        and not should_ignore_dir(e.name, ignored_dirs)
    ]

    walker = _TreeWalker(
        root,
        max_files=max_files,
        ignored_dirs=ignored_dirs,
        marker_names=frozenset(marker_names),
    )
    truncated = walker.walk()

    tasks = [
        AnalysisTask(
            id=f"task-{index}",
            relative_path=folder.relative_path,
            depth=folder.depth,
            estimated_file_count=folder.file_count,
            files_by_type=dict(folder.files_by_type),
            marker_files=tuple(folder.marker_files),
        )
        for index, folder in enumerate(
            f for f in walker.folders if f.file_count > 0
        )
    ]

    if truncated:
        logger.warning(
            "File limit of %d reached; analysis of %s is truncated", max_files, root
        )
    logger.info(
        "Partitioned %s: %d files, %d directories, %d tasks",
        root,
        walker.files,
        walker.directories,
        len(tasks),
    )

    return PartitionResult(
        root=root,
        tasks=tasks,
        truncated=truncated,
        total_files=walker.files,
        total_directories=walker.directories,
        files_by_type=walker.files_by_type,
        agent_files=walker.agent_files,
        project_types=detect_project_types(top_level_files),
        conventions=detect_conventions(root, top_level_files),
        structure=build_structure(top_level_dirs, top_level_files),
    )
