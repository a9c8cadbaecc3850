"""
Rich progress display for learn runs.

Provides:
- A live panel with task counts, retries and per-worker activity
- A progress bar over the partitioned tasks
- The completion summary report printed once the run ends
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from context_codex.learn.models import WarningType

if TYPE_CHECKING:
    from context_codex.learn.models import (
        AnalysisTask,
        CompletionSummary,
        PartitionResult,
        WorkerStatistics,
    )


def format_elapsed(ms: int) -> str:
    """Human-readable duration: 850ms, 12.3s, 4m 05s, 1h 02m."""
    if ms < 1000:
        return f"{ms}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"


@dataclass
class LearnStats:
    """Live statistics for a learn run."""

    root: str = ""
    total_tasks: int = 0
    total_files: int = 0
    truncated: bool = False
    succeeded: int = 0
    failed: int = 0
    retries: int = 0
    start_time: float | None = None
    # worker name → relative path currently being analyzed
    active: dict[str, str] = field(default_factory=dict)

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    @property
    def rate(self) -> float | None:
        """Tasks per second, or None before the first completion."""
        if self.start_time is None or self.completed == 0:
            return None
        elapsed = time.time() - self.start_time
        if elapsed <= 0:
            return None
        return self.completed / elapsed


class LearnProgressDisplay:
    """Rich live display driven by engine callbacks.

    Usage:
        with LearnProgressDisplay(console) as display:
            await run_learn(
                root,
                on_partition=display.handle_partition,
                on_progress=display.handle_progress,
            )
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.stats = LearnStats()
        self._live: Live | None = None
        self._progress: Progress | None = None
        self._task_id = None

    def _build_overview_panel(self) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(justify="right", style="bold")
        table.add_column(justify="left")
        table.add_column(justify="right", style="bold")
        table.add_column(justify="left")

        files = f"{self.stats.total_files:,}"
        if self.stats.truncated:
            files += " [yellow](truncated)[/yellow]"
        table.add_row("Folders:", f"{self.stats.total_tasks:,}", "Files:", files)
        table.add_row(
            "Done:",
            f"[green]{self.stats.succeeded:,}[/green]",
            "Failed:",
            f"[red]{self.stats.failed:,}[/red]" if self.stats.failed else "0",
        )
        rate = self.stats.rate
        table.add_row(
            "Retries:",
            f"[yellow]{self.stats.retries:,}[/yellow]" if self.stats.retries else "0",
            "Rate:",
            f"{rate:.1f}/s" if rate else "-",
        )
        for worker, path in sorted(self.stats.active.items()):
            table.add_row(f"{worker}:", f"[cyan]{path}[/cyan]", "", "")

        title = "Learning project"
        if self.stats.root:
            title = f"Learning {self.stats.root}"
        return Panel(table, title=title, border_style="blue")

    def _build_display(self) -> Group:
        return Group(self._build_overview_panel(), self._progress)

    def __enter__(self) -> LearnProgressDisplay:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._task_id = self._progress.add_task("Scanning tree...", total=None)
        self._live = Live(
            self._build_display(),
            console=self.console,
            refresh_per_second=4,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.__exit__(*args)

    def _refresh(self) -> None:
        if self._live:
            self._live.update(self._build_display())

    def handle_partition(self, partition: PartitionResult) -> None:
        self.stats.root = partition.root.name
        self.stats.total_tasks = len(partition.tasks)
        self.stats.total_files = partition.total_files
        self.stats.truncated = partition.truncated
        self.stats.start_time = time.time()
        if self._progress and self._task_id is not None:
            self._progress.update(
                self._task_id,
                description="Analyzing folders",
                total=len(partition.tasks),
            )
        self._refresh()

    def handle_progress(
        self, event: str, worker: WorkerStatistics, task: AnalysisTask
    ) -> None:
        if event == "started":
            self.stats.active[worker.name] = task.relative_path
        elif event == "retry":
            self.stats.retries += 1
        elif event in ("succeeded", "failed"):
            self.stats.active.pop(worker.name, None)
            if event == "succeeded":
                self.stats.succeeded += 1
            else:
                self.stats.failed += 1
            if self._progress and self._task_id is not None:
                self._progress.advance(self._task_id, 1)
        self._refresh()


def print_completion_summary(
    summary: CompletionSummary,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """Print the end-of-run report.

    Args:
        summary: Completion summary from the engine
        console: Optional Rich console
        verbose: Include per-worker statistics and the structure overview
    """
    console = console or Console()

    if summary.success:
        console.print("\n[green]✓[/green] [bold]Analysis Complete[/bold]")
    else:
        console.print("\n[red]✗[/red] [bold]Analysis Completed with Errors[/bold]")
    if summary.cancelled:
        console.print("[yellow]Run was cancelled before all folders were analyzed[/yellow]")

    table = Table.grid(padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Path:", summary.root_path)
    table.add_row("Project Type:", ", ".join(summary.project_types))
    table.add_row("Total Time:", format_elapsed(summary.total_elapsed_ms))
    table.add_row("Folders Analyzed:", f"{summary.folders_analyzed:,}")
    files = f"{summary.files_processed:,}"
    if summary.truncated:
        files += " [yellow](truncated)[/yellow]"
    table.add_row("Files Processed:", files)

    workers = f"[green]{summary.workers_succeeded} succeeded[/green]"
    if summary.workers_failed:
        workers += f", [red]{summary.workers_failed} failed[/red]"
    table.add_row("Workers:", workers)

    if summary.speedup_factor is not None and summary.speedup_factor > 1:
        table.add_row(
            "Speedup:",
            f"[cyan]{summary.speedup_factor:.2f}x faster than sequential[/cyan]",
        )

    resources = []
    if summary.peak_memory_mb is not None:
        resources.append(f"{summary.peak_memory_mb:.0f} MB memory")
    if summary.peak_cpu_percent is not None:
        resources.append(f"{summary.peak_cpu_percent:.0f}% CPU")
    if resources:
        table.add_row("Peak Resources:", ", ".join(resources))

    if summary.output_file_path:
        output = summary.output_file_path
        if summary.output_file_size_bytes is not None:
            output += f" ({format_file_size(summary.output_file_size_bytes)})"
        table.add_row("Output:", output)

    console.print(Panel(table, title="Summary", border_style="blue"))

    if summary.files_by_type:
        console.print("[bold]File Types:[/bold]")
        ranked = sorted(summary.files_by_type.items(), key=lambda kv: -kv[1])
        for file_type, count in ranked[:10]:
            console.print(f"  {file_type:<14} {count:,}")

    if summary.conventions:
        console.print("[bold]Conventions:[/bold]")
        for convention in summary.conventions:
            console.print(f"  • {convention}")

    if summary.agent_files:
        console.print("[bold]AGENTS.md Files:[/bold]")
        for agent_file in summary.agent_files[:10]:
            console.print(f"  • {agent_file}")
        if len(summary.agent_files) > 10:
            console.print(f"  ... and {len(summary.agent_files) - 10} more")

    if summary.warnings:
        console.print(f"[bold yellow]Warnings ({len(summary.warnings)}):[/bold yellow]")
        for warning in summary.warnings:
            style = {
                WarningType.failure: "red",
                WarningType.retry: "yellow",
                WarningType.degraded: "dim",
            }[warning.type]
            location = f" {warning.task_path}" if warning.task_path else ""
            console.print(
                f"  [{style}]{warning.type.value}[/{style}] "
                f"{warning.worker_name}{location}: {warning.error or ''}"
            )

    if verbose:
        if summary.structure:
            console.print("[bold]Structure:[/bold]")
            for item in summary.structure:
                console.print(f"  {item}")

        if summary.worker_stats:
            workers_table = Table(title="Workers", show_lines=False)
            workers_table.add_column("Worker")
            workers_table.add_column("Folders", justify="right")
            workers_table.add_column("Files", justify="right")
            workers_table.add_column("Retries", justify="right")
            workers_table.add_column("Time", justify="right")
            workers_table.add_column("Status")
            for stat in summary.worker_stats:
                workers_table.add_row(
                    stat.name,
                    f"{stat.folder_count:,}",
                    f"{stat.file_count:,}",
                    str(stat.retry_count),
                    format_elapsed(stat.duration_ms),
                    "[green]ok[/green]" if stat.success else "[red]failed[/red]",
                )
            console.print(workers_table)
