"""polyshell - typed shell output and mixed Python/Bash scripts.

Key functions:
- parse(text): Convert command output to a Python value
- run_typed(cmd): Execute a command and parse its output
- as_table(text): Parse delimited output into records
- run_file(path) / run_string(code): Execute polyglot Python/Bash source
"""

from importlib.metadata import PackageNotFoundError, version

from polyshell.exceptions import (
    CommandExecutionError,
    OutputParseError,
    PolyglotError,
    PolyshellError,
)
from polyshell.executor import (
    CommandResult,
    capture_output,
    run_full,
    run_or_raise,
    run_script,
)
from polyshell.formatters import (
    InferredType,
    ParsedValue,
    as_table,
    detect,
    infer,
    parse,
    run_pretty,
    run_table,
    run_typed,
)
from polyshell.polyglot import (
    Block,
    ExecutionContext,
    Language,
    parse_file,
    parse_string,
    run_file,
    run_string,
)

try:
    __version__ = version("polyshell")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    # Errors
    "CommandExecutionError",
    "OutputParseError",
    "PolyglotError",
    "PolyshellError",
    # Execution
    "CommandResult",
    "capture_output",
    "run_full",
    "run_or_raise",
    "run_script",
    # Typed output
    "InferredType",
    "ParsedValue",
    "as_table",
    "detect",
    "infer",
    "parse",
    "run_pretty",
    "run_table",
    "run_typed",
    # Polyglot
    "Block",
    "ExecutionContext",
    "Language",
    "parse_file",
    "parse_string",
    "run_file",
    "run_string",
]
