"""
Parallel project analysis ("learn").

Public API:
- partition_tree(): Walk a project tree into analysis tasks
- WorkerPool: Dispatch tasks to concurrent workers with timeout and retry
- ResultAggregator: Merge task outputs into one document
- MetricsCalculator: Elapsed time, speedup estimate, peak resources
- build_completion_summary(): Assemble the immutable CompletionSummary
- run_learn(): Full pipeline from root path to summary and document
"""

from context_codex.learn.aggregator import ResultAggregator
from context_codex.learn.analyzer import StructureAnalyzer
from context_codex.learn.engine import LearnRun, run_learn
from context_codex.learn.errors import LearnError, PartitionError, SchedulerError
from context_codex.learn.metrics import (
    MetricsCalculator,
    ProcessResourceSampler,
    ResourceSampler,
)
from context_codex.learn.models import (
    AnalysisTask,
    AttemptOutcome,
    CompletionSummary,
    FolderAnalysis,
    PartitionResult,
    TaskAttempt,
    WarningType,
    WorkerStatistics,
    WorkerWarning,
)
from context_codex.learn.partitioner import partition_tree
from context_codex.learn.reporter import OutputInfo, build_completion_summary
from context_codex.learn.scheduler import FolderAnalyzer, PoolResult, WorkerPool

__all__ = [
    # Pipeline
    "run_learn",
    "LearnRun",
    "partition_tree",
    "WorkerPool",
    "PoolResult",
    "FolderAnalyzer",
    "StructureAnalyzer",
    "ResultAggregator",
    "MetricsCalculator",
    "ResourceSampler",
    "ProcessResourceSampler",
    "build_completion_summary",
    "OutputInfo",
    # Models
    "AnalysisTask",
    "AttemptOutcome",
    "CompletionSummary",
    "FolderAnalysis",
    "PartitionResult",
    "TaskAttempt",
    "WarningType",
    "WorkerStatistics",
    "WorkerWarning",
    # Errors
    "LearnError",
    "PartitionError",
    "SchedulerError",
]
