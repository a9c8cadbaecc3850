"""
Default folder analyzer.

Summarizes the files directly inside one folder: counts by logical type,
a bounded file listing, visible subfolders and any agent guidance notes
(AGENTS.md) found there. The scheduler treats this as an opaque capability;
any object with a matching ``analyze`` method can replace it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from context_codex.learn.models import FolderAnalysis
from context_codex.learn.partitioner import (
    AGENT_MARKER,
    IGNORED_DIRS,
    detect_file_type,
    should_ignore_dir,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

MAX_LISTED_FILES = 50
MAX_NOTE_BYTES = 4 * 1024


class StructureAnalyzer:
    """Describe a folder's direct contents as a markdown fragment.

    Args:
        marker_names: Agent guidance file names whose content is quoted
        max_listed_files: Files listed by name before summarising the rest
        max_note_bytes: Bytes of a guidance note kept in the fragment
        file_limits: Folder path → number of files to consider, in name
            order. Used after a truncated partition so the analysis covers
            the same files the walk counted.
    """

    def __init__(
        self,
        marker_names: tuple[str, ...] = (AGENT_MARKER,),
        max_listed_files: int = MAX_LISTED_FILES,
        max_note_bytes: int = MAX_NOTE_BYTES,
        file_limits: Mapping[Path, int] | None = None,
    ) -> None:
        self.marker_names = marker_names
        self.max_listed_files = max_listed_files
        self.max_note_bytes = max_note_bytes
        self.file_limits = dict(file_limits or {})

    def analyze(self, folder_path: Path) -> FolderAnalysis:
        files: list[str] = []
        subfolders: list[str] = []
        with os.scandir(folder_path) as it:
            for entry in sorted(it, key=lambda e: e.name):
                if entry.is_dir(follow_symlinks=False):
                    if not should_ignore_dir(entry.name, IGNORED_DIRS):
                        subfolders.append(entry.name)
                elif entry.is_file(follow_symlinks=False):
                    files.append(entry.name)

        limit = self.file_limits.get(folder_path)
        if limit is not None:
            files = files[:limit]

        by_type: dict[str, int] = {}
        for name in files:
            file_type = detect_file_type(name) or "other"
            by_type[file_type] = by_type.get(file_type, 0) + 1

        lines = [f"- Files: {len(files)}"]
        if by_type:
            breakdown = ", ".join(
                f"{t}: {n}"
                for t, n in sorted(by_type.items(), key=lambda kv: (-kv[1], kv[0]))
            )
            lines.append(f"- Types: {breakdown}")
        if subfolders:
            lines.append(f"- Subfolders: {', '.join(f'{d}/' for d in subfolders)}")

        if files:
            lines.extend(["", "Files:"])
            lines.extend(f"- `{name}`" for name in files[: self.max_listed_files])
            if len(files) > self.max_listed_files:
                lines.append(f"- ... and {len(files) - self.max_listed_files} more")

        for marker in self.marker_names:
            if marker in files:
                lines.extend(["", f"Agent notes ({marker}):", ""])
                lines.append(self._read_note(folder_path / marker))

        return FolderAnalysis(
            document_fragment="\n".join(lines),
            file_count=len(files),
            folder_count=1,
        )

    def _read_note(self, path: Path) -> str:
        with path.open("rb") as f:
            raw = f.read(self.max_note_bytes + 1)
        text = raw[: self.max_note_bytes].decode("utf-8", errors="replace").strip()
        if len(raw) > self.max_note_bytes:
            text += "\n\n_(truncated)_"
        return "\n".join(f"> {line}" if line else ">" for line in text.splitlines())
