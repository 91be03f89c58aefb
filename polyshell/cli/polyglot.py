"""Polyglot commands - run, inspect and package mixed Python/Bash scripts."""

from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from polyshell.cli.logging import configure_cli_logging
from polyshell.exceptions import PolyglotError
from polyshell.polyglot import (
    BashExecutor,
    BashOutcome,
    Language,
    create_polyglot_script,
    parse_file,
    parse_string,
    run_file,
    run_string,
)

console = Console()


class EchoingBashExecutor(BashExecutor):
    """BashExecutor that forwards each block's output as soon as it finishes."""

    def execute(self, code: str, exports: dict[str, Any]) -> BashOutcome:
        outcome = super().execute(code, exports)
        if outcome.result.stdout:
            click.echo(outcome.result.stdout, nl=False)
        if outcome.result.stderr:
            click.echo(outcome.result.stderr, nl=False, err=True)
        return outcome


def _bindings_table(title: str, bindings: dict[str, Any]) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Value", style="white")
    for name, value in sorted(bindings.items()):
        table.add_row(name, type(value).__name__, escape(repr(value)))
    return table


@click.command()
@click.argument(
    "file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("-c", "--code", help="Run a literal polyglot string instead of FILE.")
@click.option("-v", "--verbose", is_flag=True, help="Log each block as it runs.")
@click.option("--ssh-host", default=None, help="Run Bash blocks on this SSH host.")
@click.option("--show-env", is_flag=True, help="Print the final bindings.")
def run(
    file: Path | None,
    code: str | None,
    verbose: bool,
    ssh_host: str | None,
    show_env: bool,
) -> None:
    """Run a polyglot FILE (or --code string).

    Bash blocks that fail are reported and skipped; a failing Python
    block stops the run.
    """
    if (file is None) == (code is None):
        raise click.UsageError("Provide exactly one of FILE or --code.")

    configure_cli_logging("run", verbose=verbose)
    bash = EchoingBashExecutor(ssh_host=ssh_host)

    try:
        if file is not None:
            ctx = run_file(file, verbose=verbose or None, bash=bash)
        else:
            ctx = run_string(code, verbose=verbose or None, bash=bash)
    except PolyglotError as e:
        raise click.ClickException(str(e)) from e
    except Exception as e:
        raise click.ClickException(f"Python block failed: {e!r}") from e

    failures = [r for r in ctx.results if r.exit_code != 0]
    if failures:
        click.echo(
            f"Warning: {len(failures)} of {len(ctx.results)} block(s) failed",
            err=True,
        )

    if show_env:
        console.print(_bindings_table("Python bindings", ctx.python_env))
        console.print(_bindings_table("Bash bindings", ctx.bash_env))


@click.command()
@click.argument("source")
@click.option(
    "--string",
    "as_string",
    is_flag=True,
    help="Treat SOURCE as literal code (inline markers only).",
)
def split(source: str, as_string: bool) -> None:
    """Show the language blocks SOURCE splits into."""
    if as_string:
        blocks = parse_string(source)
    else:
        try:
            blocks = parse_file(source)
        except PolyglotError as e:
            raise click.ClickException(str(e)) from e

    table = Table(title=f"Blocks ({len(blocks)})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Language", style="cyan")
    table.add_column("Lines", justify="right")
    table.add_column("First line", style="white")

    for index, block in enumerate(blocks):
        style = "green" if block.language is Language.PYTHON else "magenta"
        lines = block.body.splitlines()
        table.add_row(
            str(index),
            f"[{style}]{block.language.value}[/{style}]",
            str(len(lines)),
            escape(lines[0] if lines else ""),
        )

    console.print(table)


@click.command()
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def script(output: Path, source: Path) -> None:
    """Package polyglot SOURCE as an executable Python script OUTPUT."""
    path = create_polyglot_script(output, source.read_text())
    console.print(f"[green]✓[/green] Created executable polyglot script: {path}")
