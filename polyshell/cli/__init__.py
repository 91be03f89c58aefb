"""CLI interface for polyshell.

Modular CLI structure with commands split by functionality.
"""

import logging

import click
from dotenv import load_dotenv

from polyshell import __version__

# Load environment variables (POLYSHELL_*) from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the polyshell version and exit.",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """polyshell - typed shell output and mixed Python/Bash scripts.

    \b
      polyshell run script.py        Run a polyglot file
      polyshell split script.py      Show how a file splits into blocks
      polyshell typed "seq 1 5"      Run a command, print the typed result
      polyshell table "df -h"        Run a command, render output as a table
      polyshell detect "3.14"        Classify a piece of text
    """
    if version:
        click.echo(__version__)
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all commands with the main CLI."""
    from polyshell.cli.output import detect_cmd, table, typed
    from polyshell.cli.polyglot import run, script, split

    main.add_command(run)
    main.add_command(split)
    main.add_command(script)
    main.add_command(typed)
    main.add_command(table)
    main.add_command(detect_cmd)


# Register commands at import time
register_commands()

__all__ = ["main"]
