"""
Parallel learn engine.

Data flows one way:

    partition_tree → WorkerPool → ResultAggregator → MetricsCalculator
                   → build_completion_summary

Only structural problems (bad root, no workers, nothing to analyze) raise.
Every other outcome, including cancellation and failed tasks, ends in a
CompletionSummary.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from context_codex import settings
from context_codex.context import format_context_for_prompt, load_context_files
from context_codex.learn.aggregator import ResultAggregator
from context_codex.learn.analyzer import StructureAnalyzer
from context_codex.learn.metrics import MetricsCalculator, sample_periodically
from context_codex.learn.output import write_context_document
from context_codex.learn.partitioner import partition_tree
from context_codex.learn.reporter import build_completion_summary
from context_codex.learn.scheduler import PoolResult, WorkerPool

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from context_codex.learn.metrics import ResourceSampler
    from context_codex.learn.models import (
        AnalysisTask,
        CompletionSummary,
        PartitionResult,
        WorkerStatistics,
    )
    from context_codex.learn.scheduler import FolderAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class LearnRun:
    """Everything produced by one run."""

    summary: CompletionSummary
    document: str
    partition: PartitionResult
    pool: PoolResult


def render_overview(partition: PartitionResult) -> str:
    """Markdown overview of the project from partition metadata."""
    lines = [
        "## Overview",
        "",
        f"- Path: `{partition.root}`",
        f"- Project type: {', '.join(partition.project_types)}",
        f"- Files: {partition.total_files:,}"
        + (" (truncated)" if partition.truncated else ""),
        f"- Directories: {partition.total_directories:,}",
    ]
    if partition.files_by_type:
        top = sorted(partition.files_by_type.items(), key=lambda kv: (-kv[1], kv[0]))
        lines.append(
            "- File types: " + ", ".join(f"{t} ({n:,})" for t, n in top[:10])
        )
    if partition.conventions:
        lines.extend(["", "### Conventions", ""])
        lines.extend(f"- {c}" for c in partition.conventions)
    if partition.agent_files:
        lines.extend(["", "### Agent guidance files", ""])
        lines.extend(f"- `{f}`" for f in partition.agent_files)
    if partition.structure:
        lines.extend(["", "### Structure", ""])
        lines.extend(f"- `{item}`" for item in partition.structure)
    return "\n".join(lines)


def _default_analyzer(partition: PartitionResult) -> StructureAnalyzer:
    """StructureAnalyzer bounded to the files the partition counted."""
    if not partition.truncated:
        return StructureAnalyzer()
    return StructureAnalyzer(
        file_limits={
            task.resolve(partition.root): task.estimated_file_count
            for task in partition.tasks
        }
    )


async def run_learn(
    root: str | Path,
    *,
    analyzer: FolderAnalyzer | None = None,
    workers: int | None = None,
    task_timeout: float | None = None,
    max_retries: int | None = None,
    max_files: int | None = None,
    output_path: str | Path | None = None,
    context_files: Sequence[str | Path] = (),
    sampler: ResourceSampler | None = None,
    sample_interval: float = 0.5,
    cancel_event: asyncio.Event | None = None,
    on_partition: Callable[[PartitionResult], None] | None = None,
    on_progress: Callable[[str, WorkerStatistics, AnalysisTask], None]
    | None = None,
) -> LearnRun:
    """Analyze a project tree with a pool of parallel workers.

    Args:
        root: Project root directory
        analyzer: Folder analysis capability (default: StructureAnalyzer)
        workers: Worker slots (default: settings)
        task_timeout: Seconds per attempt (default: settings)
        max_retries: Retries after a failed attempt (default: settings)
        max_files: Partitioner file cap (default: settings)
        output_path: Where to write the document; relative paths resolve
            against root. None skips writing.
        context_files: Extra markdown/text files prepended to the document
        sampler: Optional resource sampler for peak memory/CPU
        sample_interval: Seconds between resource samples
        cancel_event: Set to stop dispatching new tasks
        on_partition: Called once with the partition result
        on_progress: Per-task progress callback, see WorkerPool

    Returns:
        LearnRun with the completion summary and combined document

    Raises:
        PartitionError: Root is missing or not a directory
        SchedulerError: No workers or nothing to analyze
    """
    workers = settings.get_worker_count() if workers is None else workers
    task_timeout = settings.get_task_timeout() if task_timeout is None else task_timeout
    max_retries = settings.get_max_retries() if max_retries is None else max_retries
    max_files = settings.get_max_files() if max_files is None else max_files

    loop = asyncio.get_running_loop()
    partition = await loop.run_in_executor(
        None, lambda: partition_tree(root, max_files=max_files)
    )
    if on_partition:
        on_partition(partition)

    aggregator = ResultAggregator(title=f"Project Context: {partition.root.name}")
    metrics = MetricsCalculator()
    pool = WorkerPool(
        analyzer or _default_analyzer(partition),
        partition.root,
        workers=workers,
        task_timeout=task_timeout,
        max_retries=max_retries,
        aggregator=aggregator,
        metrics=metrics,
        cancel_event=cancel_event,
        on_progress=on_progress,
    )

    stop_sampling = asyncio.Event()
    sampler_task = None
    if sampler is not None:
        sampler_task = asyncio.create_task(
            sample_periodically(sampler, metrics, stop_sampling, sample_interval)
        )

    metrics.start()
    try:
        pool_result = await pool.run(partition.tasks)
    finally:
        metrics.stop()
        stop_sampling.set()
        if sampler_task is not None:
            await sampler_task

    if partition.truncated and pool_result.worker_stats:
        first = pool_result.worker_stats[0]
        aggregator.add_degraded(
            first.id,
            first.name,
            f"File limit of {max_files:,} reached; analysis covers a partial tree",
        )

    preamble_parts = [render_overview(partition)]
    if context_files:
        loaded = await loop.run_in_executor(
            None, lambda: load_context_files(list(context_files), Path.cwd())
        )
        formatted = format_context_for_prompt(
            loaded.combined_content,
            [f.path for f in loaded.files if f.success],
        )
        if formatted:
            preamble_parts.append(formatted)
    document = aggregator.render_document("\n\n".join(preamble_parts))

    output = None
    if output_path is not None:
        target = Path(output_path)
        if not target.is_absolute():
            target = partition.root / target
        output = await loop.run_in_executor(
            None, lambda: write_context_document(document, target)
        )

    summary = build_completion_summary(
        partition, pool_result, aggregator, metrics, output=output
    )
    logger.info(
        "Learn run finished: success=%s folders=%d files=%d elapsed=%dms",
        summary.success,
        summary.folders_analyzed,
        summary.files_processed,
        summary.total_elapsed_ms,
    )
    return LearnRun(
        summary=summary, document=document, partition=partition, pool=pool_result
    )
