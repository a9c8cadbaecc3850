"""
Worker pool for the parallel learn pipeline.

Architecture:
- One shared asyncio.Queue filled in partition order
- W worker coroutines (slots); an idle slot takes the next task
- Every attempt runs the blocking analysis on its own fresh thread, so
  analyses execute in parallel while the event loop only coordinates. A
  timed-out thread is abandoned, never reused, so a hung analysis cannot
  delay later attempts on the same slot
- Each attempt is bounded by ``asyncio.wait_for``; a timeout is a failed
  attempt, not a crashed slot
- Failed attempts retry on the same slot up to ``max_retries`` times
  (a bounded loop, never recursion)

Attempt state machine:
    pending → running → succeeded | failed | timed_out

Cancellation is cooperative. ``cancel()`` (or setting the shared event)
stops new dispatches and further retries; attempts already running are
allowed to reach a terminal outcome first. Results produced before
cancellation are still aggregated.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from context_codex.learn.errors import SchedulerError
from context_codex.learn.models import (
    AnalysisTask,
    AttemptOutcome,
    FolderAnalysis,
    TaskAttempt,
    WarningType,
    WorkerStatistics,
    WorkerWarning,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from context_codex.learn.aggregator import ResultAggregator
    from context_codex.learn.metrics import MetricsCalculator

logger = logging.getLogger(__name__)


class FolderAnalyzer(Protocol):
    """Capability that analyzes one folder.

    Called from a worker thread. Blocking is expected; raising any exception
    marks the attempt as failed.
    """

    def analyze(self, folder_path: Path) -> FolderAnalysis: ...


@dataclass
class PoolResult:
    """Outcome of a worker pool run."""

    worker_stats: list[WorkerStatistics] = field(default_factory=list)
    attempts: list[TaskAttempt] = field(default_factory=list)
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    tasks_undispatched: int = 0
    cancelled: bool = False

    @property
    def workers_succeeded(self) -> int:
        return sum(1 for s in self.worker_stats if s.success)

    @property
    def workers_failed(self) -> int:
        return sum(1 for s in self.worker_stats if not s.success)

    def attempts_for(self, task_id: str) -> list[TaskAttempt]:
        return [a for a in self.attempts if a.task_id == task_id]


class WorkerPool:
    """Dispatch analysis tasks to a bounded number of concurrent workers.

    Args:
        analyzer: Folder analysis capability
        root: Project root that task paths are relative to
        workers: Number of worker slots (parallelism degree)
        task_timeout: Maximum seconds per attempt
        max_retries: Retries allowed after a failed attempt
        aggregator: Receives successful outputs and warnings
        metrics: Receives successful task durations
        cancel_event: Optional shared event for external cancellation
        on_progress: Optional callback ``(event, worker_stats, task)`` where
            event is one of started, succeeded, retry, failed
    """

    def __init__(
        self,
        analyzer: FolderAnalyzer,
        root: Path,
        *,
        workers: int,
        task_timeout: float,
        max_retries: int,
        aggregator: ResultAggregator,
        metrics: MetricsCalculator,
        cancel_event: asyncio.Event | None = None,
        on_progress: Callable[[str, WorkerStatistics, AnalysisTask], None]
        | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if task_timeout <= 0:
            raise ValueError(f"task_timeout must be > 0, got {task_timeout}")
        self.analyzer = analyzer
        self.root = Path(root)
        self.workers = workers
        self.task_timeout = task_timeout
        self.max_retries = max_retries
        self.aggregator = aggregator
        self.metrics = metrics
        self.on_progress = on_progress
        self._cancel_event = cancel_event or asyncio.Event()
        self._attempts: list[TaskAttempt] = []
        self._tasks_succeeded = 0
        self._tasks_failed = 0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching new tasks; in-flight attempts finish first."""
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested, draining in-flight attempts")
        self._cancel_event.set()

    async def run(self, tasks: list[AnalysisTask]) -> PoolResult:
        """Run all tasks and return per-slot statistics.

        Raises:
            SchedulerError: If no worker can be started or there is nothing
                to schedule
        """
        if self.workers <= 0:
            raise SchedulerError(f"Worker count must be positive, got {self.workers}")
        if not tasks:
            raise SchedulerError("No folders to analyze after partitioning")

        queue: asyncio.Queue[AnalysisTask] = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)

        slot_count = min(self.workers, len(tasks))
        slots = [
            WorkerStatistics(id=i, name=f"worker-{i}") for i in range(slot_count)
        ]

        logger.info(
            "Dispatching %d tasks to %d workers (timeout=%.1fs, max_retries=%d)",
            len(tasks),
            slot_count,
            self.task_timeout,
            self.max_retries,
        )
        await asyncio.gather(*(self._worker(slot, queue) for slot in slots))

        used = [s for s in slots if s.tasks_assigned > 0]
        result = PoolResult(
            worker_stats=used,
            attempts=list(self._attempts),
            tasks_succeeded=self._tasks_succeeded,
            tasks_failed=self._tasks_failed,
            tasks_undispatched=queue.qsize(),
            cancelled=self.cancelled,
        )
        logger.info(
            "Pool finished: %d succeeded, %d failed, %d not dispatched%s",
            result.tasks_succeeded,
            result.tasks_failed,
            result.tasks_undispatched,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    async def _worker(
        self,
        stats: WorkerStatistics,
        queue: asyncio.Queue[AnalysisTask],
    ) -> None:
        while not self.cancelled:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            stats.tasks_assigned += 1
            try:
                succeeded = await self._run_task(stats, task)
            finally:
                queue.task_done()
            if succeeded:
                self._tasks_succeeded += 1
            else:
                self._tasks_failed += 1
                stats.tasks_failed += 1
                stats.success = False
        logger.debug("%s drained", stats.name)

    async def _run_task(
        self,
        stats: WorkerStatistics,
        task: AnalysisTask,
    ) -> bool:
        """Run one task with bounded retries. Returns True on success."""
        folder = task.resolve(self.root)
        self._notify("started", stats, task)

        for attempt_number in range(1, self.max_attempts + 1):
            attempt = TaskAttempt(task_id=task.id, attempt_number=attempt_number)
            self._attempts.append(attempt)
            attempt.outcome = AttemptOutcome.running
            logger.debug(
                "%s: %s attempt %d/%d",
                stats.name,
                task.relative_path,
                attempt_number,
                self.max_attempts,
            )

            try:
                analysis = await self._attempt(stats, attempt, folder)
            except TimeoutError:
                attempt.finish(
                    AttemptOutcome.timed_out,
                    f"Timed out after {self.task_timeout:g}s",
                )
            except Exception as e:
                attempt.finish(AttemptOutcome.failed, str(e) or type(e).__name__)
            else:
                attempt.finish(AttemptOutcome.succeeded)
                duration_ms = attempt.duration_ms or 0
                stats.duration_ms += duration_ms
                stats.folder_count += analysis.folder_count
                stats.file_count += analysis.file_count
                self.aggregator.record_success(task, analysis, stats.name)
                self.metrics.record_task_duration(duration_ms)
                self._notify("succeeded", stats, task)
                return True

            stats.duration_ms += attempt.duration_ms or 0

            if attempt_number < self.max_attempts and not self.cancelled:
                stats.retry_count += 1
                logger.warning(
                    "%s: %s attempt %d failed (%s), retrying",
                    stats.name,
                    task.relative_path,
                    attempt_number,
                    attempt.error,
                )
                self.aggregator.record_warning(
                    WorkerWarning(
                        worker_id=stats.id,
                        worker_name=stats.name,
                        type=WarningType.retry,
                        error=attempt.error,
                        retry_count=attempt_number,
                        task_path=task.relative_path,
                    )
                )
                self._notify("retry", stats, task)
                continue

            error = attempt.error
            if attempt_number < self.max_attempts:
                error = f"{error} (retry abandoned: run cancelled)"
            logger.warning(
                "%s: %s failed after %d attempt(s): %s",
                stats.name,
                task.relative_path,
                attempt_number,
                error,
            )
            self.aggregator.record_warning(
                WorkerWarning(
                    worker_id=stats.id,
                    worker_name=stats.name,
                    type=WarningType.failure,
                    error=error,
                    retry_count=attempt_number - 1,
                    task_path=task.relative_path,
                )
            )
            self._notify("failed", stats, task)
            return False

        return False  # unreachable: max_attempts >= 1

    async def _attempt(
        self, stats: WorkerStatistics, attempt: TaskAttempt, folder: Path
    ) -> FolderAnalysis:
        """Run one analysis on a dedicated thread, bounded by the task timeout.

        The attempt clock starts when the analyzer is entered, not when the
        work is submitted.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def call() -> FolderAnalysis:
            attempt.started_at = time.monotonic()
            loop.call_soon_threadsafe(started.set)
            return self.analyzer.analyze(folder)

        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"learn-{stats.name}"
        )
        try:
            future = loop.run_in_executor(executor, call)
            await started.wait()
            return await asyncio.wait_for(future, timeout=self.task_timeout)
        finally:
            # A timed-out thread runs on until the analyzer returns
            executor.shutdown(wait=False)

    def _notify(self, event: str, stats: WorkerStatistics, task: AnalysisTask) -> None:
        if not self.on_progress:
            return
        try:
            self.on_progress(event, stats, task)
        except Exception as e:
            logger.warning("Progress callback failed: %s", e)
