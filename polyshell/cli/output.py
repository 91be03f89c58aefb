"""Output commands - run shell commands and show their typed output."""

import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from polyshell.cli.logging import configure_cli_logging
from polyshell.exceptions import CommandExecutionError
from polyshell.formatters import (
    InferredType,
    detect,
    run_pretty,
    run_table,
    run_typed,
)

console = Console()

TYPE_CHOICES = [t.value for t in InferredType]


def _command_failed(e: CommandExecutionError) -> click.ClickException:
    return click.ClickException(
        f"Command exited with code {e.exit_code}: {e.stderr.strip() or e.command}"
    )


@click.command()
@click.argument("cmd")
@click.option(
    "--type",
    "target_type",
    type=click.Choice(TYPE_CHOICES),
    default=None,
    help="Force the output type instead of detecting it.",
)
@click.option("--ssh-host", default=None, help="Run the command on this SSH host.")
@click.option("--timeout", type=int, default=None, help="Timeout in seconds.")
@click.option("-v", "--verbose", is_flag=True, help="Show INFO logging.")
def typed(
    cmd: str,
    target_type: str | None,
    ssh_host: str | None,
    timeout: int | None,
    verbose: bool,
) -> None:
    """Run CMD and print its output as a typed value.

    \b
      polyshell typed "seq 1 5"              int_array
      polyshell typed "date +%F"             datetime
      polyshell typed "echo 42" --type float
    """
    configure_cli_logging("typed", verbose=verbose)
    try:
        if target_type is None:
            run_pretty(cmd, console=console, ssh_host=ssh_host, timeout=timeout)
        else:
            value = run_typed(cmd, target_type, ssh_host=ssh_host, timeout=timeout)
            console.print(f"[bold]Type:[/bold] {target_type} ({type(value).__name__})")
            console.print(escape(repr(value)))
    except CommandExecutionError as e:
        raise _command_failed(e) from e


@click.command()
@click.argument("cmd")
@click.option("-d", "--delimiter", default=None, help="Field delimiter (default: space).")
@click.option(
    "--header",
    default=None,
    help="Comma-separated column names; otherwise the first line is the header.",
)
@click.option("--ssh-host", default=None, help="Run the command on this SSH host.")
@click.option("--timeout", type=int, default=None, help="Timeout in seconds.")
def table(
    cmd: str,
    delimiter: str | None,
    header: str | None,
    ssh_host: str | None,
    timeout: int | None,
) -> None:
    """Run CMD and render its output as a table.

    Rows whose field count differs from the header are dropped.
    """
    configure_cli_logging("table")
    columns = [c.strip() for c in header.split(",")] if header else None
    try:
        rows = run_table(
            cmd,
            delimiter=delimiter,
            header=columns,
            ssh_host=ssh_host,
            timeout=timeout,
        )
    except CommandExecutionError as e:
        raise _command_failed(e) from e

    if not rows:
        console.print("[yellow]No rows parsed[/yellow]")
        return

    result = Table(title=escape(cmd))
    for column in rows[0]:
        result.add_column(escape(column), style="cyan")
    for row in rows:
        result.add_row(*(escape(value) for value in row.values()))
    console.print(result)


@click.command("detect")
@click.argument("text", required=False)
def detect_cmd(text: str | None) -> None:
    """Print the inferred type of TEXT (or of stdin when TEXT is omitted)."""
    if text is None:
        text = sys.stdin.read()
    click.echo(detect(text).value)
