"""
Polyglot: mixed Python/Bash script execution.

A polyglot source interleaves Python and Bash text. The scanner splits it
into an ordered list of single-language blocks, and the runner executes
those blocks one after another against a shared ExecutionContext so that
later blocks see variables set by earlier ones, whatever their language.

Markers (matched at the start of a line):

    # PYTHON_BEGIN / # PYTHON_END     paired Python block
    # BASH_BEGIN / # BASH_END         paired Bash block
    #P> <statement>                   one-line Python block
    #B> <command>                     one-line Bash block

Files start in the language given by their extension (.py → Python,
.sh/.bash → Bash, anything else behaves as Bash until a marker says
otherwise). Literal strings always start in Python and only honour the
inline markers.

Variable sharing:
- Python → Bash: str, int, float and bool bindings are exported into the
  shell before each Bash block.
- Bash → Python: environment variables a Bash block sets or changes are
  captured after it succeeds and become Python bindings for later blocks.

Failure policy: a failing Bash block is logged and execution continues; a
failing Python block raises immediately and the remaining blocks are
skipped.
"""

import ast
import keyword
import logging
import os
import re
import shlex
import textwrap
import types
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, NamedTuple

from polyshell.exceptions import PolyglotError
from polyshell.executor import CommandResult, is_local_host, run_full
from polyshell.settings import get_verbose

logger = logging.getLogger(__name__)


class Language(str, Enum):
    """Language of a polyglot block."""

    PYTHON = "python"
    BASH = "bash"


# Starting state for files with an unrecognised extension; behaves as Bash
AUTO = "auto"

# ============================================================================
# Markers
# ============================================================================

PYTHON_BLOCK_START = re.compile(r"^#\s*PYTHON_BEGIN")
PYTHON_BLOCK_END = re.compile(r"^#\s*PYTHON_END")
BASH_BLOCK_START = re.compile(r"^#\s*BASH_BEGIN")
BASH_BLOCK_END = re.compile(r"^#\s*BASH_END")

PYTHON_INLINE = re.compile(r"^\s*#P>\s*(.+)$")
BASH_INLINE = re.compile(r"^\s*#B>\s*(.+)$")

# (pattern, opens_block, language) in priority order
_PAIRED_MARKERS = (
    (PYTHON_BLOCK_START, True, Language.PYTHON),
    (PYTHON_BLOCK_END, False, Language.PYTHON),
    (BASH_BLOCK_START, True, Language.BASH),
    (BASH_BLOCK_END, False, Language.BASH),
)

_INLINE_MARKERS = (
    (PYTHON_INLINE, Language.PYTHON),
    (BASH_INLINE, Language.BASH),
)

_EXTENSION_LANGUAGES = {
    ".py": Language.PYTHON,
    ".sh": Language.BASH,
    ".bash": Language.BASH,
}


@dataclass(frozen=True)
class Block:
    """A contiguous run of same-language source text."""

    language: Language
    body: str


def _complement(language: Language) -> Language:
    return Language.BASH if language is Language.PYTHON else Language.PYTHON


def detect_file_language(path: str | Path) -> Language | str:
    """Detect the starting language from a file extension.

    Returns:
        Language.PYTHON for .py, Language.BASH for .sh/.bash, AUTO otherwise.
    """
    return _EXTENSION_LANGUAGES.get(Path(path).suffix.lower(), AUTO)


# ============================================================================
# Scanning
# ============================================================================


def split_blocks(
    lines: Iterable[str],
    start: Language | str = Language.PYTHON,
    paired_markers: bool = True,
) -> list[Block]:
    """Partition source lines into language blocks.

    Args:
        lines: Source lines without trailing newlines
        start: Initial active language (Language or AUTO)
        paired_markers: Honour BEGIN/END markers. When False only the
            inline markers are recognised.

    Returns:
        Blocks in source order. Marker lines never produce a block of their
        own and blank buffers are never emitted.
    """
    blocks: list[Block] = []
    buffer: list[str] = []
    current = start

    def flush() -> None:
        if any(line.strip() for line in buffer):
            language = Language.BASH if current == AUTO else Language(current)
            blocks.append(Block(language, "\n".join(buffer)))
        buffer.clear()

    for line in lines:
        if paired_markers:
            marker = next(
                (
                    (opens, language)
                    for pattern, opens, language in _PAIRED_MARKERS
                    if pattern.match(line)
                ),
                None,
            )
            if marker is not None:
                opens, language = marker
                flush()
                current = language if opens else _complement(language)
                continue

        inline = next(
            (
                (match.group(1), language)
                for pattern, language in _INLINE_MARKERS
                if (match := pattern.match(line))
            ),
            None,
        )
        if inline is not None:
            flush()
            blocks.append(Block(inline[1], inline[0]))
            continue

        buffer.append(line)

    flush()
    return blocks


def parse_file(path: str | Path) -> list[Block]:
    """Parse a polyglot file into language blocks.

    Raises:
        PolyglotError: If the file cannot be read.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PolyglotError(f"Cannot read polyglot file {path}: {e}") from e
    return split_blocks(text.splitlines(), start=detect_file_language(path))


def parse_string(code: str) -> list[Block]:
    """Parse polyglot code from a string (Python first, inline markers only)."""
    return split_blocks(
        code.splitlines(), start=Language.PYTHON, paired_markers=False
    )


# ============================================================================
# Execution context
# ============================================================================


@dataclass
class BlockResult:
    """Outcome of one executed block."""

    block: Block
    value: Any = None
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass
class ExecutionContext:
    """Bindings shared by the blocks of one polyglot run.

    python_env maps names to arbitrary Python values; bash_env holds the
    environment variables captured from Bash blocks. Created fresh for each
    run and handed back to the caller for inspection.
    """

    python_env: dict[str, Any] = field(default_factory=dict)
    bash_env: dict[str, str] = field(default_factory=dict)
    results: list[BlockResult] = field(default_factory=list)


# ============================================================================
# Python blocks
# ============================================================================


def _is_capturable(name: str, value: Any) -> bool:
    return not name.startswith("__") and not isinstance(value, types.ModuleType)


class PythonEvaluator:
    """Evaluate Python source in an isolated namespace."""

    filename = "<polyglot>"

    def evaluate(
        self, code: str, bindings: Mapping[str, Any]
    ) -> tuple[Any, dict[str, Any]]:
        """Run code with bindings pre-assigned.

        Returns:
            (value, bindings) where value is the result of a trailing
            expression statement (None otherwise) and bindings holds every
            name left in the namespace, minus dunders and modules.
        """
        namespace: dict[str, Any] = dict(bindings)
        tree = ast.parse(textwrap.dedent(code), filename=self.filename, mode="exec")

        trailing = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            trailing = ast.Expression(tree.body.pop().value)

        exec(compile(tree, self.filename, "exec"), namespace)
        value = None
        if trailing is not None:
            value = eval(compile(trailing, self.filename, "eval"), namespace)

        captured = {
            name: item
            for name, item in namespace.items()
            if _is_capturable(name, item)
        }
        return value, captured


# ============================================================================
# Bash blocks
# ============================================================================

# Printed by the EXIT trap between the block's own output and the env dump
ENV_DUMP_MARKER = "__POLYSHELL_ENV_DUMP__"

_ENV_LINE_RE = re.compile(r"([A-Z_][A-Z0-9_]*)=(.*)", re.DOTALL)
_SHELL_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Maintained by bash itself, never treated as block output
_SHELL_MANAGED_VARS = frozenset({"_", "SHLVL", "PWD", "OLDPWD", "LINES", "COLUMNS"})


def _shell_value(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def exportable_bindings(bindings: Mapping[str, Any]) -> dict[str, str]:
    """Select bindings that can be exported to a shell, as strings."""
    return {
        key: _shell_value(value)
        for key, value in bindings.items()
        if isinstance(value, (str, int, float, bool)) and _SHELL_NAME_RE.fullmatch(key)
    }


def render_exports(bindings: Mapping[str, Any]) -> list[str]:
    """Render bindings as ``export KEY='VALUE'`` lines."""
    return [
        f"export {key}={shlex.quote(value)}"
        for key, value in exportable_bindings(bindings).items()
    ]


class BashOutcome(NamedTuple):
    """Result of a Bash block plus the variables it set."""

    result: CommandResult
    env: dict[str, str]


class BashExecutor:
    """Execute Bash source through the command execution facility."""

    def __init__(self, ssh_host: str | None = None, timeout: int | None = None):
        self.ssh_host = ssh_host
        self.timeout = timeout

    def execute(self, code: str, exports: Mapping[str, Any]) -> BashOutcome:
        """Run code with exports prepended.

        The script runs once as a ``bash -c`` argument with stdin closed,
        so commands that read stdin never see the block's own source. An
        EXIT trap prints ENV_DUMP_MARKER followed by the NUL-separated
        environment, which is split off the block's stdout. On success,
        variables whose value differs from the baseline (this process's
        environment for local runs, plus the exports) are returned as the
        block's bindings.
        """
        trap = f"trap 'printf \"\\n%s\\n\" {ENV_DUMP_MARKER}; env -0' EXIT"
        script = "\n".join([trap, *render_exports(exports), code])

        raw = run_full(
            script, ssh_host=self.ssh_host, timeout=self.timeout, shell="bash"
        )
        stdout, sep, dump = raw.stdout.rpartition(f"\n{ENV_DUMP_MARKER}\n")
        if not sep:
            stdout, dump = raw.stdout, ""
        result = CommandResult(stdout, raw.stderr, raw.exit_code)

        if not result.ok:
            return BashOutcome(result, {})

        baseline = dict(os.environ) if is_local_host(self.ssh_host) else {}
        baseline.update(exportable_bindings(exports))

        env = {}
        for entry in dump.split("\0"):
            match = _ENV_LINE_RE.fullmatch(entry)
            if not match or match.group(1) in _SHELL_MANAGED_VARS:
                continue
            key, value = match.groups()
            if baseline.get(key) != value:
                env[key] = value
        return BashOutcome(result, env)


# ============================================================================
# Pipeline
# ============================================================================


def execute_python_block(
    block: Block, ctx: ExecutionContext, evaluator: PythonEvaluator
) -> Any:
    """Execute a Python block, importing Bash bindings first."""
    for key, value in ctx.bash_env.items():
        if key.isidentifier() and not keyword.iskeyword(key):
            ctx.python_env[key] = value

    try:
        value, bindings = evaluator.evaluate(block.body, ctx.python_env)
    except Exception:
        logger.exception("Python block failed:\n%s", block.body)
        raise

    ctx.python_env.update(bindings)
    ctx.results.append(BlockResult(block, value=value))
    return value


def execute_bash_block(
    block: Block, ctx: ExecutionContext, executor: BashExecutor
) -> CommandResult:
    """Execute a Bash block with Python bindings exported.

    A non-zero exit is logged, not raised.
    """
    outcome = executor.execute(block.body, ctx.python_env)
    result = outcome.result

    if not result.ok:
        logger.error(
            "Bash block failed with exit code %d: %s",
            result.exit_code,
            result.stderr.strip(),
        )
    else:
        ctx.bash_env.update(outcome.env)

    ctx.results.append(
        BlockResult(
            block,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )
    )
    return result


def execute_blocks(
    blocks: Iterable[Block],
    *,
    verbose: bool | None = None,
    python: PythonEvaluator | None = None,
    bash: BashExecutor | None = None,
) -> ExecutionContext:
    """Execute blocks in order against a fresh ExecutionContext.

    Args:
        blocks: Blocks from parse_file() or parse_string()
        verbose: Log each block at INFO (default from settings)
        python: Python evaluator (default PythonEvaluator())
        bash: Bash executor (default BashExecutor())

    Returns:
        The final context.

    Raises:
        Exception: Whatever a Python block raised.
    """
    if verbose is None:
        verbose = get_verbose()
    python = python or PythonEvaluator()
    bash = bash or BashExecutor()
    ctx = ExecutionContext()

    for index, block in enumerate(blocks):
        if not block.body.strip():
            continue

        if verbose:
            logger.info("Executing %s block %d", block.language.value, index)

        if block.language is Language.PYTHON:
            execute_python_block(block, ctx, python)
        else:
            execute_bash_block(block, ctx, bash)

    return ctx


def run_file(
    path: str | Path,
    *,
    verbose: bool | None = None,
    python: PythonEvaluator | None = None,
    bash: BashExecutor | None = None,
) -> ExecutionContext:
    """Execute a polyglot script file."""
    return execute_blocks(parse_file(path), verbose=verbose, python=python, bash=bash)


def run_string(
    code: str,
    *,
    verbose: bool | None = None,
    python: PythonEvaluator | None = None,
    bash: BashExecutor | None = None,
) -> ExecutionContext:
    """Execute polyglot code from a string."""
    return execute_blocks(parse_string(code), verbose=verbose, python=python, bash=bash)


# ============================================================================
# Script generation
# ============================================================================

_SCRIPT_TEMPLATE = '''#!/usr/bin/env python3
"""Polyglot script generated by polyshell."""

from polyshell.polyglot import run_string

SCRIPT_CODE = {code!r}

if __name__ == "__main__":
    run_string(SCRIPT_CODE)
'''


def create_polyglot_script(output_file: str | Path, code: str) -> Path:
    """Write an executable Python script that runs polyglot code.

    Returns:
        Path to the written script.
    """
    output_file = Path(output_file)
    output_file.write_text(_SCRIPT_TEMPLATE.format(code=code))
    output_file.chmod(0o755)
    logger.info(f"Created executable polyglot script: {output_file}")
    return output_file
