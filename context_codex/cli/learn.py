"""Learn command: parallel analysis of a project tree."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import signal
from pathlib import Path

import click
from rich.console import Console

logger = logging.getLogger(__name__)


@click.command()
@click.argument(
    "path",
    type=click.Path(path_type=Path),
    default=".",
    required=False,
)
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Show per-worker statistics")
@click.option(
    "--workers",
    "-w",
    type=int,
    default=None,
    help="Number of parallel workers (default: min(8, CPU count))",
)
@click.option(
    "--timeout",
    "task_timeout",
    type=float,
    default=None,
    help="Seconds allowed per folder attempt (default: 60)",
)
@click.option(
    "--max-retries",
    type=int,
    default=None,
    help="Retries after a failed attempt (default: 2)",
)
@click.option(
    "--max-files",
    type=int,
    default=None,
    help="Stop scanning after this many files (default: 10000)",
)
@click.option(
    "--output",
    "-o",
    "output",
    type=click.Path(path_type=Path),
    default=None,
    help="Context document path, relative to PATH (default: .context-codex/context.md)",
)
@click.option(
    "--context",
    "-c",
    "context_files",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Extra markdown/text file to include (repeatable)",
)
@click.option("--no-output", is_flag=True, help="Do not write the context document")
def learn(
    path: Path,
    as_json: bool,
    verbose: bool,
    workers: int | None,
    task_timeout: float | None,
    max_retries: int | None,
    max_files: int | None,
    output: Path | None,
    context_files: tuple[Path, ...],
    no_output: bool,
) -> None:
    """Analyze a project tree with parallel workers.

    Partitions PATH into per-folder tasks, analyzes them concurrently with
    timeout and retry, then writes one combined context document and
    prints a completion summary. Ctrl-C stops dispatching new folders and
    reports what finished.

    \b
    Examples:
      context-codex learn
      context-codex learn ./repo --workers 4 -v
      context-codex learn ./repo --json --no-output
      context-codex learn ./repo -c docs/architecture.md
    """
    from context_codex import settings
    from context_codex.cli.logging import configure_cli_logging
    from context_codex.cli.rich_output import should_use_rich
    from context_codex.learn.engine import run_learn
    from context_codex.learn.errors import LearnError
    from context_codex.learn.metrics import ProcessResourceSampler
    from context_codex.learn.progress import (
        LearnProgressDisplay,
        print_completion_summary,
    )

    use_rich = should_use_rich(json_output=as_json)
    configure_cli_logging("learn", verbose=verbose)

    if use_rich:
        console = Console()
    else:
        console = None
        if not as_json:
            logging.basicConfig(
                level=logging.INFO,
                format="%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%H:%M:%S",
            )

    learn_logger = logging.getLogger("context_codex.learn")

    def log_print(msg: str) -> None:
        clean_msg = re.sub(r"\[[^\]]+\]", "", msg)
        if console:
            console.print(msg)
        elif not as_json:
            learn_logger.info(clean_msg)

    def fail(message: str) -> None:
        if as_json:
            click.echo(json.dumps({"error": True, "message": message}))
        elif console:
            console.print(f"[red]Error: {message}[/red]")
        else:
            click.echo(f"Error: {message}", err=True)
        raise SystemExit(1)

    output_path = None if no_output else (output or settings.get_output_path())
    sampler = ProcessResourceSampler() if settings.get_sample_resources() else None

    def log_progress(event, worker, task):
        if event in ("retry", "failed"):
            learn_logger.info("%s %s: %s", worker.name, event, task.relative_path)

    async def _run():
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Not available on Windows event loops or outside the main thread
            pass

        kwargs = dict(
            workers=workers,
            task_timeout=task_timeout,
            max_retries=max_retries,
            max_files=max_files,
            output_path=output_path,
            context_files=context_files,
            sampler=sampler,
            cancel_event=cancel_event,
        )
        try:
            if use_rich:
                with LearnProgressDisplay(console) as display:
                    return await run_learn(
                        path,
                        on_partition=display.handle_partition,
                        on_progress=display.handle_progress,
                        **kwargs,
                    )
            return await run_learn(
                path,
                on_progress=None if as_json else log_progress,
                **kwargs,
            )
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

    try:
        run = asyncio.run(_run())
    except (LearnError, ValueError) as e:
        fail(str(e))
        return
    except OSError as e:
        fail(f"Failed to write context document: {e}")
        return

    summary = run.summary
    if as_json:
        click.echo(summary.model_dump_json(indent=2))
    elif console:
        print_completion_summary(summary, console, verbose=verbose)
    else:
        log_print(
            f"Learn {'complete' if summary.success else 'completed with errors'}: "
            f"{summary.folders_analyzed} folders, {summary.files_processed} files, "
            f"{summary.workers_succeeded} workers succeeded, "
            f"{summary.workers_failed} failed, {summary.total_elapsed_ms}ms"
        )
        for warning in summary.failure_warnings:
            log_print(f"  {warning.worker_name} {warning.task_path}: {warning.error}")
        if summary.output_file_path:
            log_print(f"  Output: {summary.output_file_path}")

    if not summary.success:
        raise SystemExit(1)
