"""
Result aggregation for the parallel learn pipeline.

Workers complete in arbitrary order. Every mutation goes through a single
lock so concurrent completions never lose updates or interleave partial
sections. Sections are kept in completion order; each one is delimited and
attributed to the folder it came from so the combined document stays well
formed regardless of ordering.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from context_codex.learn.models import (
    AnalysisTask,
    FolderAnalysis,
    WarningType,
    WorkerWarning,
)

logger = logging.getLogger(__name__)

SECTION_BEGIN = "<!-- begin: {path} -->"
SECTION_END = "<!-- end: {path} -->"


@dataclass(frozen=True)
class DocumentSection:
    """One completed folder analysis, ready to be rendered."""

    task_id: str
    path: str
    worker_name: str
    body: str

    def render(self) -> str:
        heading = "Project root" if self.path == "." else self.path
        return "\n".join(
            [
                SECTION_BEGIN.format(path=self.path),
                f"## {heading}",
                "",
                self.body.strip(),
                SECTION_END.format(path=self.path),
            ]
        )


class ResultAggregator:
    """Merges task outputs into one document and accumulates run totals.

    ``folders_analyzed`` and ``files_processed`` only move on successful task
    completion. Warnings are appended exactly once, in the order the
    scheduler reports them.
    """

    def __init__(self, title: str = "Project Context") -> None:
        self.title = title
        self._lock = threading.Lock()
        self._sections: list[DocumentSection] = []
        self._warnings: list[WorkerWarning] = []
        self._folders_analyzed = 0
        self._files_processed = 0

    def record_success(
        self, task: AnalysisTask, analysis: FolderAnalysis, worker_name: str
    ) -> None:
        """Append a completed task's fragment and update totals atomically."""
        section = DocumentSection(
            task_id=task.id,
            path=task.relative_path,
            worker_name=worker_name,
            body=analysis.document_fragment,
        )
        with self._lock:
            self._sections.append(section)
            self._folders_analyzed += analysis.folder_count
            self._files_processed += analysis.file_count

    def record_warning(self, warning: WorkerWarning) -> None:
        with self._lock:
            self._warnings.append(warning)

    def add_degraded(
        self, worker_id: int, worker_name: str, error: str, task_path: str | None = None
    ) -> WorkerWarning:
        """Record a degraded-run warning attributed to a worker slot."""
        warning = WorkerWarning(
            worker_id=worker_id,
            worker_name=worker_name,
            type=WarningType.degraded,
            error=error,
            task_path=task_path,
        )
        self.record_warning(warning)
        return warning

    @property
    def folders_analyzed(self) -> int:
        with self._lock:
            return self._folders_analyzed

    @property
    def files_processed(self) -> int:
        with self._lock:
            return self._files_processed

    @property
    def warnings(self) -> list[WorkerWarning]:
        with self._lock:
            return list(self._warnings)

    @property
    def sections(self) -> list[DocumentSection]:
        with self._lock:
            return list(self._sections)

    def render_document(self, preamble: str | None = None) -> str:
        """Render the combined document.

        Args:
            preamble: Optional markdown placed between the title and the
                folder sections (project overview, loaded context files)
        """
        sections = self.sections
        parts = [f"# {self.title}", ""]
        if preamble and preamble.strip():
            parts.extend([preamble.strip(), ""])
        if sections:
            parts.extend(section.render() + "\n" for section in sections)
        else:
            parts.append("_No folders were analyzed._\n")
        return "\n".join(parts)
