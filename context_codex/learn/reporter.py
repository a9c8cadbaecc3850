"""Assemble the immutable CompletionSummary at the end of a run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from context_codex.learn.models import CompletionSummary

if TYPE_CHECKING:
    from context_codex.learn.aggregator import ResultAggregator
    from context_codex.learn.metrics import MetricsCalculator
    from context_codex.learn.models import PartitionResult
    from context_codex.learn.scheduler import PoolResult


@dataclass(frozen=True)
class OutputInfo:
    """Where the combined document was written."""

    path: str
    size_bytes: int


def build_completion_summary(
    partition: PartitionResult,
    pool: PoolResult,
    aggregator: ResultAggregator,
    metrics: MetricsCalculator,
    output: OutputInfo | None = None,
) -> CompletionSummary:
    """Build the summary handed to the presentation layer.

    ``success`` is True iff at least one worker slot ran and every slot
    finalized successfully. A truncated partition does not clear it; the
    ``truncated`` flag reports that instead.
    """
    worker_stats = tuple(s.to_model() for s in pool.worker_stats)
    success = bool(worker_stats) and all(s.success for s in worker_stats)

    return CompletionSummary(
        success=success,
        total_elapsed_ms=metrics.total_elapsed_ms,
        folders_analyzed=aggregator.folders_analyzed,
        files_processed=aggregator.files_processed,
        workers_succeeded=pool.workers_succeeded,
        workers_failed=pool.workers_failed,
        speedup_factor=metrics.speedup_factor,
        peak_memory_mb=metrics.peak_memory_mb,
        peak_cpu_percent=metrics.peak_cpu_percent,
        output_file_path=output.path if output else None,
        output_file_size_bytes=output.size_bytes if output else None,
        truncated=partition.truncated,
        cancelled=pool.cancelled,
        warnings=tuple(w.to_model() for w in aggregator.warnings),
        worker_stats=worker_stats,
        root_path=str(partition.root),
        total_files=partition.total_files,
        total_directories=partition.total_directories,
        project_types=tuple(partition.project_types),
        conventions=tuple(partition.conventions),
        agent_files=tuple(partition.agent_files),
        files_by_type=dict(partition.files_by_type),
        structure=tuple(partition.structure),
    )
