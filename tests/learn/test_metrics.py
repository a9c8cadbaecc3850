"""Tests for run metrics and resource sampling."""

from __future__ import annotations

import asyncio
import time

import pytest

from context_codex.learn.metrics import (
    MetricsCalculator,
    ProcessResourceSampler,
    sample_periodically,
)


class TestMetricsCalculator:
    """Tests for MetricsCalculator."""

    def test_elapsed_before_start_is_zero(self):
        assert MetricsCalculator().total_elapsed_ms == 0

    def test_elapsed_measured(self):
        metrics = MetricsCalculator()
        metrics.start()
        time.sleep(0.02)
        metrics.stop()

        assert metrics.total_elapsed_ms >= 15

    def test_speedup_none_below_two_tasks(self):
        metrics = MetricsCalculator()
        metrics.start()
        metrics.record_task_duration(500)
        metrics.stop()

        assert metrics.speedup_factor is None

    def test_speedup_is_sequential_estimate_over_elapsed(self):
        metrics = MetricsCalculator()
        metrics.start()
        time.sleep(0.05)
        metrics.stop()
        for _ in range(4):
            metrics.record_task_duration(1000)

        speedup = metrics.speedup_factor
        assert metrics.sequential_estimate_ms == 4000
        assert speedup is not None
        assert speedup == pytest.approx(4000 / metrics.total_elapsed_ms)
        assert speedup > 1

    def test_peaks_none_until_sampled(self):
        metrics = MetricsCalculator()

        assert metrics.peak_memory_mb is None
        assert metrics.peak_cpu_percent is None

    def test_peaks_keep_maximum(self):
        metrics = MetricsCalculator()
        metrics.record_sample(100.0, 20.0)
        metrics.record_sample(250.0, 5.0)
        metrics.record_sample(120.0, 80.0)

        assert metrics.peak_memory_mb == 250.0
        assert metrics.peak_cpu_percent == 80.0


class FixedSampler:
    def __init__(self, readings):
        self.readings = list(readings)

    def sample(self):
        if not self.readings:
            raise RuntimeError("no more readings")
        return self.readings.pop(0)


class TestSamplePeriodically:
    """Tests for the background sampling loop."""

    @pytest.mark.asyncio
    async def test_samples_until_stopped(self):
        metrics = MetricsCalculator()
        stop = asyncio.Event()
        sampler = FixedSampler([(10.0, 1.0), (30.0, 3.0)] + [(20.0, 2.0)] * 100)

        task = asyncio.create_task(
            sample_periodically(sampler, metrics, stop, interval=0.01)
        )
        await asyncio.sleep(0.05)
        stop.set()
        await task

        assert metrics.peak_memory_mb == 30.0
        assert metrics.peak_cpu_percent == 3.0

    @pytest.mark.asyncio
    async def test_sampler_failure_ends_sampling(self):
        metrics = MetricsCalculator()
        stop = asyncio.Event()

        await sample_periodically(
            FixedSampler([(5.0, 1.0)]), metrics, stop, interval=0.001
        )

        assert metrics.peak_memory_mb == 5.0


class TestProcessResourceSampler:
    """Tests for the psutil-backed sampler."""

    def test_sample_current_process(self):
        memory_mb, cpu_percent = ProcessResourceSampler().sample()

        assert memory_mb > 0
        assert cpu_percent >= 0
