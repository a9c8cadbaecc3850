"""
Data models for the parallel learn pipeline.

Runtime structures (tasks, attempts, per-worker statistics, warnings) are
plain dataclasses owned by the partitioner, scheduler and aggregator.

CompletionSummary is a frozen Pydantic model: it is built once at the end of
a run and handed to the presentation layer, which never mutates it. The
Pydantic form also gives the CLI its ``--json`` output for free.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AnalysisTask",
    "AttemptOutcome",
    "CompletionSummary",
    "FolderAnalysis",
    "PartitionResult",
    "TaskAttempt",
    "WarningType",
    "WorkerStatistics",
    "WorkerStatisticsModel",
    "WorkerWarning",
    "WorkerWarningModel",
]


# ============================================================================
# Partition output
# ============================================================================


@dataclass(frozen=True)
class AnalysisTask:
    """One unit of work: a folder to analyze.

    Created by the partitioner in discovery order and never modified.
    """

    id: str
    relative_path: str  # "." for the root folder
    depth: int
    estimated_file_count: int
    files_by_type: dict[str, int] = field(default_factory=dict, compare=False)
    marker_files: tuple[str, ...] = ()

    def resolve(self, root: Path) -> Path:
        """Absolute folder path for this task under ``root``."""
        if self.relative_path == ".":
            return root
        return root / self.relative_path


@dataclass
class PartitionResult:
    """Result of walking a project tree."""

    root: Path
    tasks: list[AnalysisTask] = field(default_factory=list)
    truncated: bool = False
    total_files: int = 0
    total_directories: int = 0
    files_by_type: dict[str, int] = field(default_factory=dict)
    agent_files: list[str] = field(default_factory=list)
    project_types: list[str] = field(default_factory=list)
    conventions: list[str] = field(default_factory=list)
    structure: list[str] = field(default_factory=list)


# ============================================================================
# Attempts and worker accounting
# ============================================================================


class AttemptOutcome(str, Enum):
    """State of a single task attempt."""

    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    timed_out = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            AttemptOutcome.succeeded,
            AttemptOutcome.failed,
            AttemptOutcome.timed_out,
        )

    @property
    def is_failure(self) -> bool:
        return self in (AttemptOutcome.failed, AttemptOutcome.timed_out)


@dataclass
class TaskAttempt:
    """One execution try of a task on a worker slot."""

    task_id: str
    attempt_number: int  # 1-based
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None
    outcome: AttemptOutcome = AttemptOutcome.pending
    error: str | None = None

    def finish(self, outcome: AttemptOutcome, error: str | None = None) -> None:
        self.finished_at = time.monotonic()
        self.outcome = outcome
        self.error = error

    @property
    def duration_ms(self) -> int | None:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at) * 1000)


@dataclass
class FolderAnalysis:
    """Successful result of analyzing one folder."""

    document_fragment: str
    file_count: int
    folder_count: int = 1


@dataclass
class WorkerStatistics:
    """Statistics for a single worker slot.

    Only the slot that owns the record writes to it, so no lock is needed.
    """

    id: int
    name: str
    folder_count: int = 0
    file_count: int = 0
    duration_ms: int = 0
    retry_count: int = 0
    success: bool = True
    tasks_assigned: int = 0
    tasks_failed: int = 0

    def to_model(self) -> WorkerStatisticsModel:
        return WorkerStatisticsModel(
            id=self.id,
            name=self.name,
            folder_count=self.folder_count,
            file_count=self.file_count,
            duration_ms=self.duration_ms,
            retry_count=self.retry_count,
            success=self.success,
            tasks_assigned=self.tasks_assigned,
            tasks_failed=self.tasks_failed,
        )


class WarningType(str, Enum):
    """Kind of warning recorded during a run."""

    failure = "failure"  # Task failed after all retries
    retry = "retry"  # An attempt failed and is being retried
    degraded = "degraded"  # Run completed with reduced fidelity


@dataclass(frozen=True)
class WorkerWarning:
    """A warning attributed to a worker slot."""

    worker_id: int
    worker_name: str
    type: WarningType
    error: str | None = None
    retry_count: int | None = None
    task_path: str | None = None

    def to_model(self) -> WorkerWarningModel:
        return WorkerWarningModel(
            worker_id=self.worker_id,
            worker_name=self.worker_name,
            type=self.type,
            error=self.error,
            retry_count=self.retry_count,
            task_path=self.task_path,
        )


# ============================================================================
# Completion summary (immutable, handed to presentation)
# ============================================================================


class WorkerStatisticsModel(BaseModel):
    """Frozen view of WorkerStatistics."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    folder_count: int
    file_count: int
    duration_ms: int
    retry_count: int
    success: bool
    tasks_assigned: int = 0
    tasks_failed: int = 0


class WorkerWarningModel(BaseModel):
    """Frozen view of WorkerWarning."""

    model_config = ConfigDict(frozen=True)

    worker_id: int
    worker_name: str
    type: WarningType
    error: str | None = None
    retry_count: int | None = None
    task_path: str | None = None


class CompletionSummary(BaseModel):
    """Final result of a learn run.

    Optional metrics are None when nothing was measured, never zero.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    total_elapsed_ms: int
    folders_analyzed: int
    files_processed: int
    workers_succeeded: int
    workers_failed: int
    speedup_factor: float | None = None
    peak_memory_mb: float | None = None
    peak_cpu_percent: float | None = None
    output_file_path: str | None = None
    output_file_size_bytes: int | None = None
    truncated: bool = False
    cancelled: bool = False
    warnings: tuple[WorkerWarningModel, ...] = ()
    worker_stats: tuple[WorkerStatisticsModel, ...] = ()

    # Project overview from the partitioner
    root_path: str = ""
    total_files: int = 0
    total_directories: int = 0
    project_types: tuple[str, ...] = ()
    conventions: tuple[str, ...] = ()
    agent_files: tuple[str, ...] = ()
    files_by_type: dict[str, int] = Field(default_factory=dict)
    structure: tuple[str, ...] = ()

    @property
    def failure_warnings(self) -> list[WorkerWarningModel]:
        return [w for w in self.warnings if w.type == WarningType.failure]

    @property
    def retry_warnings(self) -> list[WorkerWarningModel]:
        return [w for w in self.warnings if w.type == WarningType.retry]
