"""End-to-end tests for run_learn()."""

from __future__ import annotations

import asyncio

import pytest

from context_codex.learn.engine import render_overview, run_learn
from context_codex.learn.errors import PartitionError, SchedulerError
from context_codex.learn.models import WarningType
from context_codex.learn.partitioner import partition_tree


class TestRunLearn:
    """Tests for the full pipeline."""

    @pytest.mark.asyncio
    async def test_three_folders_ten_files(self, three_folder_project):
        run = await run_learn(
            three_folder_project,
            workers=3,
            task_timeout=5.0,
            max_retries=2,
            max_files=10_000,
            output_path=None,
        )
        summary = run.summary

        assert summary.success
        assert summary.folders_analyzed == 3
        assert summary.files_processed == 10
        assert summary.workers_failed == 0
        assert summary.warnings == ()
        assert not summary.truncated
        assert summary.output_file_path is None
        assert summary.workers_succeeded + summary.workers_failed == len(
            summary.worker_stats
        )
        assert sum(s.folder_count for s in summary.worker_stats) == 3
        assert "<!-- begin: alpha -->" in run.document
        assert run.document.startswith(
            f"# Project Context: {three_folder_project.name}"
        )

    @pytest.mark.asyncio
    async def test_ignored_node_modules_not_counted(self, three_folder_project):
        """A large node_modules tree never reaches the workers."""
        deps = three_folder_project / "node_modules" / "dep"
        deps.mkdir(parents=True)
        for i in range(5000):
            (deps / f"m{i}.js").touch()

        run = await run_learn(
            three_folder_project,
            workers=3,
            task_timeout=5.0,
            max_files=10_000,
            output_path=None,
        )

        assert run.summary.folders_analyzed == 3
        assert run.summary.files_processed == 10
        assert not run.summary.truncated
        assert run.summary.total_files == 10

    @pytest.mark.asyncio
    async def test_writes_output_relative_to_root(self, three_folder_project):
        run = await run_learn(
            three_folder_project,
            workers=2,
            task_timeout=5.0,
            max_retries=0,
            output_path=".context-codex/context.md",
        )

        target = three_folder_project / ".context-codex" / "context.md"
        assert target.exists()
        assert run.summary.output_file_path == str(target.resolve())
        assert run.summary.output_file_size_bytes == target.stat().st_size
        assert target.read_text(encoding="utf-8") == run.document

    @pytest.mark.asyncio
    async def test_retry_then_success_reports_warnings(
        self, three_folder_project, scripted_analyzer
    ):
        run = await run_learn(
            three_folder_project,
            analyzer=scripted_analyzer(failures={"beta": 2}),
            workers=1,
            task_timeout=5.0,
            max_retries=2,
            output_path=None,
        )
        summary = run.summary

        assert summary.success
        assert summary.worker_stats[0].retry_count == 2
        assert len(summary.retry_warnings) == 2
        assert summary.failure_warnings == []

    @pytest.mark.asyncio
    async def test_failed_task_fails_run(self, three_folder_project, scripted_analyzer):
        run = await run_learn(
            three_folder_project,
            analyzer=scripted_analyzer(failures={"gamma": 99}),
            workers=1,
            task_timeout=5.0,
            max_retries=2,
            output_path=None,
        )
        summary = run.summary

        assert not summary.success
        assert summary.workers_failed == 1
        assert len(summary.failure_warnings) == 1
        assert summary.folders_analyzed == 2
        assert summary.files_processed == 6
        assert "<!-- begin: gamma -->" not in run.document

    @pytest.mark.asyncio
    async def test_truncated_run_adds_degraded_warning(self, tmp_path, tree):
        tree(tmp_path, {f"a/{i}.py": "" for i in range(8)})

        run = await run_learn(
            tmp_path, workers=2, task_timeout=5.0, max_files=5, output_path=None
        )
        summary = run.summary

        assert summary.truncated
        assert summary.success
        assert summary.total_files == 5
        degraded = [w for w in summary.warnings if w.type == WarningType.degraded]
        assert len(degraded) == 1
        assert "File limit" in degraded[0].error
        # The default analyzer stops where the walk stopped
        assert summary.files_processed == 5
        assert summary.files_processed <= summary.total_files

    @pytest.mark.asyncio
    async def test_warnings_attributed_to_reported_workers(
        self, tmp_path, tree, scripted_analyzer
    ):
        """Retry, failure and degraded warnings all name listed worker slots."""
        tree(tmp_path, {f"d{i}/{n}.py": "" for i in range(6) for n in "ab"})
        owners = {}

        def track(event, stats, task):
            if event == "started":
                owners[task.relative_path] = stats.id

        run = await run_learn(
            tmp_path,
            analyzer=scripted_analyzer(
                failures={"d1": 1, "d3": 99}, default_delay=0.02
            ),
            workers=3,
            task_timeout=5.0,
            max_retries=2,
            max_files=10,
            output_path=None,
            on_progress=track,
        )
        summary = run.summary

        assert summary.truncated
        assert {w.type for w in summary.warnings} == {
            WarningType.retry,
            WarningType.failure,
            WarningType.degraded,
        }
        assert {w.worker_id for w in summary.warnings} <= {
            s.id for s in summary.worker_stats
        }
        (failure,) = summary.failure_warnings
        assert failure.task_path == "d3"
        assert failure.worker_id == owners["d3"]
        assert summary.workers_failed == 1
        assert not summary.success

    @pytest.mark.asyncio
    async def test_resource_samples_reported(self, three_folder_project):
        class ConstantSampler:
            def sample(self):
                return 64.0, 12.5

        run = await run_learn(
            three_folder_project,
            workers=2,
            task_timeout=5.0,
            output_path=None,
            sampler=ConstantSampler(),
            sample_interval=0.01,
        )

        assert run.summary.peak_memory_mb == 64.0
        assert run.summary.peak_cpu_percent == 12.5

    @pytest.mark.asyncio
    async def test_context_files_prepended(self, three_folder_project, tmp_path):
        notes = tmp_path / "notes.md"
        notes.write_text("Deploys every Friday.")

        run = await run_learn(
            three_folder_project,
            workers=1,
            task_timeout=5.0,
            output_path=None,
            context_files=[notes],
        )

        assert "Deploys every Friday." in run.document
        assert run.document.index("Deploys every Friday.") < run.document.index(
            "<!-- begin:"
        )

    @pytest.mark.asyncio
    async def test_pre_cancelled_run_reports_nothing_done(self, three_folder_project):
        cancel_event = asyncio.Event()
        cancel_event.set()

        run = await run_learn(
            three_folder_project,
            workers=2,
            task_timeout=5.0,
            output_path=None,
            cancel_event=cancel_event,
        )
        summary = run.summary

        assert summary.cancelled
        assert not summary.success
        assert summary.folders_analyzed == 0
        assert summary.worker_stats == ()
        assert run.pool.tasks_undispatched == 3

    @pytest.mark.asyncio
    async def test_callbacks_invoked(self, three_folder_project):
        partitions = []
        events = []

        await run_learn(
            three_folder_project,
            workers=2,
            task_timeout=5.0,
            output_path=None,
            on_partition=partitions.append,
            on_progress=lambda event, stats, task: events.append(event),
        )

        assert len(partitions) == 1
        assert events.count("started") == 3
        assert events.count("succeeded") == 3

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path):
        with pytest.raises(PartitionError):
            await run_learn(tmp_path / "missing", workers=1, output_path=None)

    @pytest.mark.asyncio
    async def test_empty_root_raises(self, tmp_path):
        with pytest.raises(SchedulerError):
            await run_learn(tmp_path, workers=1, output_path=None)

    @pytest.mark.asyncio
    async def test_zero_workers_raises(self, three_folder_project):
        with pytest.raises(SchedulerError):
            await run_learn(three_folder_project, workers=0, output_path=None)


class TestRenderOverview:
    """Tests for render_overview()."""

    def test_overview_sections(self, tmp_path, tree):
        tree(tmp_path, {"package.json": "{}", "AGENTS.md": "", "src/a.ts": ""})

        overview = render_overview(partition_tree(tmp_path))

        assert overview.startswith("## Overview")
        assert "- Project type: node" in overview
        assert "### Agent guidance files" in overview
        assert "- `src/`" in overview
