"""
Run metrics: elapsed time, estimated speedup and peak resource usage.

The speedup factor is an estimate: the sum of successful task durations (as
if they had run one after another) divided by the measured wall-clock time.
No real sequential run is ever timed.

Resource usage comes from an external sampler; the calculator only keeps the
running maximum of the samples it is handed.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


class ResourceSampler(Protocol):
    """Supplies (memory_mb, cpu_percent) samples."""

    def sample(self) -> tuple[float, float]: ...


class ProcessResourceSampler:
    """Samples memory and CPU of the current process and its children."""

    def __init__(self, process: psutil.Process | None = None) -> None:
        self._process = process or psutil.Process()
        # First cpu_percent() call always returns 0.0; prime it
        self._process.cpu_percent(interval=None)

    def sample(self) -> tuple[float, float]:
        memory = self._process.memory_info().rss
        cpu = self._process.cpu_percent(interval=None)
        for child in self._process.children(recursive=True):
            try:
                memory += child.memory_info().rss
                cpu += child.cpu_percent(interval=None)
            except psutil.Error:
                continue
        return memory / (1024 * 1024), cpu


class MetricsCalculator:
    """Accumulates timing and resource metrics for one run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start: float | None = None
        self._end: float | None = None
        self._task_durations: list[int] = []
        self._peak_memory_mb: float | None = None
        self._peak_cpu_percent: float | None = None

    def start(self) -> None:
        self._start = time.monotonic()
        self._end = None

    def stop(self) -> None:
        self._end = time.monotonic()

    @property
    def total_elapsed_ms(self) -> int:
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)

    def record_task_duration(self, duration_ms: int) -> None:
        """Record the measured duration of a successful task."""
        with self._lock:
            self._task_durations.append(max(0, duration_ms))

    @property
    def completed_tasks(self) -> int:
        with self._lock:
            return len(self._task_durations)

    @property
    def sequential_estimate_ms(self) -> int:
        with self._lock:
            return sum(self._task_durations)

    @property
    def speedup_factor(self) -> float | None:
        """Estimated sequential time / elapsed time, None below two tasks."""
        if self.completed_tasks < 2:
            return None
        elapsed = self.total_elapsed_ms
        if elapsed <= 0:
            return None
        return self.sequential_estimate_ms / elapsed

    def record_sample(self, memory_mb: float, cpu_percent: float) -> None:
        with self._lock:
            if self._peak_memory_mb is None or memory_mb > self._peak_memory_mb:
                self._peak_memory_mb = memory_mb
            if self._peak_cpu_percent is None or cpu_percent > self._peak_cpu_percent:
                self._peak_cpu_percent = cpu_percent

    @property
    def peak_memory_mb(self) -> float | None:
        with self._lock:
            return self._peak_memory_mb

    @property
    def peak_cpu_percent(self) -> float | None:
        with self._lock:
            return self._peak_cpu_percent


async def sample_periodically(
    sampler: ResourceSampler,
    metrics: MetricsCalculator,
    stop_event: asyncio.Event,
    interval: float = 0.5,
) -> None:
    """Feed sampler readings into ``metrics`` until ``stop_event`` is set.

    A failing sampler ends sampling for the run; it never fails the run.
    """
    while True:
        try:
            memory_mb, cpu_percent = sampler.sample()
        except Exception as e:
            logger.warning("Resource sampling stopped: %s", e)
            return
        metrics.record_sample(memory_mb, cpu_percent)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
            return
        except TimeoutError:
            continue
