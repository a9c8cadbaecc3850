"""CLI interface for context-codex."""

import logging

import click
from dotenv import load_dotenv

from context_codex import __version__

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the context-codex version and exit.",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """context-codex - parallel project analysis.

    \b
      context-codex learn              Analyze the current directory
      context-codex learn ./repo -v    Analyze a path with per-worker stats
      context-codex learn --json       Emit the completion summary as JSON
    """
    # Values from a local .env file; real environment variables win
    load_dotenv()

    if version:
        click.echo(__version__)
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all commands with the main CLI."""
    from context_codex.cli.learn import learn

    main.add_command(learn)


register_commands()

__all__ = ["main"]
