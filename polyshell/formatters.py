"""
Typed conversion of shell command output.

Command output arrives as one text blob. ``detect()`` classifies it into a
closed set of types by ordered pattern matching (first match wins), and
``parse()`` converts it to the matching Python value. Conversion is bounded
and permissive: when a scalar, datetime, array or JSON-like conversion
fails the trimmed text comes back unchanged instead of an exception.

Detection order:
    1. empty                        -> nothing
    2. digits                       -> int
    3. digits.digits                -> float
    4. true / false (any case)      -> bool
    5. YYYY-MM-DD prefix            -> datetime
    6. multi-line                   -> int_array / float_array / string_array
    7. [...] or {...}               -> json
    8. NAME=...                     -> dict
    9. anything else                -> string

The JSON-like and dict parsers are intentionally shallow: they split on
every comma and know nothing about nesting or escaping.

Usage:
    from polyshell.formatters import parse, run_typed, as_table

    parse("1\\n2\\n3")                       # [1, 2, 3]
    run_typed("ls | wc -l")                 # 42
    as_table("name size\\na.txt 10")         # [{"name": "a.txt", "size": "10"}]
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from polyshell.exceptions import OutputParseError
from polyshell.executor import capture_output
from polyshell.settings import get_table_delimiter

logger = logging.getLogger(__name__)


class InferredType(str, Enum):
    """Semantic type of a block of command output."""

    NOTHING = "nothing"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    DATETIME = "datetime"
    INT_ARRAY = "int_array"
    FLOAT_ARRAY = "float_array"
    STRING_ARRAY = "string_array"
    JSON = "json"
    DICT = "dict"
    STRING = "string"


@dataclass(frozen=True)
class ParsedValue:
    """A converted value tagged with the type that produced it.

    After a fallback the tag is ``InferredType.STRING`` and ``value`` holds
    the trimmed original text.
    """

    type: InferredType
    value: Any


_INT_RE = re.compile(r"\d+")
_FLOAT_RE = re.compile(r"\d+\.\d+")
_BOOL_RE = re.compile(r"true|false", re.IGNORECASE)
_DATE_PREFIX_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_JSON_RE = re.compile(r"[\[{].*[\]}]", re.DOTALL)
_ASSIGNMENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*=")
_ASSIGNMENT_LINE_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)=(.*)")

# Tried in order; the first format that parses wins
DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
)

TRUTHY_VALUES = frozenset({"true", "1", "yes"})

# Characters trimmed from JSON-like items and keys
_JSON_STRIP_CHARS = " \"'"
# Characters trimmed from shell assignment values
_QUOTE_CHARS = "\"'"


def _non_empty_lines(text: str) -> list[str]:
    """Split on newlines, trim each line, drop blank lines."""
    return [line.strip() for line in text.split("\n") if line.strip()]


# ============================================================================
# Detection
# ============================================================================


def detect(text: str) -> InferredType:
    """Detect the probable type of command output."""
    stripped = text.strip()

    if not stripped:
        return InferredType.NOTHING
    if _INT_RE.fullmatch(stripped):
        return InferredType.INT
    if _FLOAT_RE.fullmatch(stripped):
        return InferredType.FLOAT
    if _BOOL_RE.fullmatch(stripped):
        return InferredType.BOOL
    if _DATE_PREFIX_RE.match(stripped):
        return InferredType.DATETIME
    if "\n" in stripped:
        lines = _non_empty_lines(stripped)
        if all(_INT_RE.fullmatch(line) for line in lines):
            return InferredType.INT_ARRAY
        if all(_FLOAT_RE.fullmatch(line) for line in lines):
            return InferredType.FLOAT_ARRAY
        return InferredType.STRING_ARRAY
    if _JSON_RE.fullmatch(stripped):
        return InferredType.JSON
    if _ASSIGNMENT_RE.match(stripped):
        return InferredType.DICT
    return InferredType.STRING


# ============================================================================
# Converters
# ============================================================================


def parse_datetime(text: str) -> datetime | str:
    """Parse a timestamp using the first matching entry of DATETIME_FORMATS.

    Returns the original text when no format matches.
    """
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    logger.warning("No datetime format matched %r, returning string", text)
    return text


def parse_array(text: str, element_type: Callable[[str], Any] = int) -> list:
    """Convert each non-blank line of text with element_type.

    Raises:
        OutputParseError: If any line fails to convert. No partial result
            is returned.
    """
    type_name = getattr(element_type, "__name__", str(element_type))
    values = []
    for line in _non_empty_lines(text):
        try:
            values.append(element_type(line))
        except ValueError as e:
            raise OutputParseError(
                text.strip(),
                f"{type_name}_array",
                f"Cannot parse element {line!r} as {type_name}",
            ) from e
    return values


def parse_json_like(text: str) -> list[str] | dict[str, str] | str:
    """Parse flat JSON-like text without a JSON parser.

    ``[a, "b"]`` becomes ``["a", "b"]`` and ``{"k": "v"}`` becomes
    ``{"k": "v"}``. Items are split on every comma, so nested structures
    and quoted commas come out mangled. Text without a matching outer
    bracket pair is returned unchanged.

    Raises:
        OutputParseError: If a ``{...}`` segment has no ``:`` separator.
    """
    if text.startswith("[") and text.endswith("]"):
        content = text[1:-1]
        if not content.strip():
            return []
        return [item.strip(_JSON_STRIP_CHARS) for item in content.split(",")]

    if text.startswith("{") and text.endswith("}"):
        content = text[1:-1]
        result: dict[str, str] = {}
        if not content.strip():
            return result
        for pair in content.split(","):
            key, sep, value = pair.partition(":")
            if not sep:
                raise OutputParseError(
                    text, "json", f"Segment {pair!r} has no key/value separator"
                )
            result[key.strip(_JSON_STRIP_CHARS)] = value.strip(_JSON_STRIP_CHARS)
        return result

    return text


def parse_shell_assignments(text: str) -> dict[str, str]:
    """Parse ``NAME=value`` lines into a dict; other lines are skipped."""
    result = {}
    for line in text.split("\n"):
        match = _ASSIGNMENT_LINE_RE.fullmatch(line.strip())
        if match:
            result[match.group(1)] = match.group(2).strip(_QUOTE_CHARS)
    return result


def _convert(text: str, kind: InferredType) -> Any:
    """Convert trimmed, non-empty text to the Python value for kind."""
    match kind:
        case InferredType.NOTHING:
            return None
        case InferredType.INT:
            return int(text)
        case InferredType.FLOAT:
            return float(text)
        case InferredType.BOOL:
            return text.lower() in TRUTHY_VALUES
        case InferredType.DATETIME:
            return parse_datetime(text)
        case InferredType.INT_ARRAY:
            return parse_array(text, int)
        case InferredType.FLOAT_ARRAY:
            return parse_array(text, float)
        case InferredType.STRING_ARRAY:
            return _non_empty_lines(text)
        case InferredType.JSON:
            return parse_json_like(text)
        case InferredType.DICT:
            return parse_shell_assignments(text)
        case InferredType.STRING:
            return text
    raise AssertionError(f"Unhandled output type: {kind!r}")


def infer(text: str, target_type: InferredType | str | None = None) -> ParsedValue:
    """Parse command output into a tagged value.

    Args:
        text: Raw command output
        target_type: Force a type instead of detecting one. Accepts an
            InferredType or its string value (e.g. ``"int_array"``).

    Returns:
        ParsedValue whose tag reflects the value actually produced.

    Raises:
        ValueError: If target_type is not a known type name.
    """
    stripped = text.strip()
    if not stripped:
        return ParsedValue(InferredType.NOTHING, None)

    kind = InferredType(target_type) if target_type is not None else detect(stripped)

    try:
        value = _convert(stripped, kind)
    except ValueError as e:
        logger.warning(f"Failed to parse output as {kind.value}, returning string: {e}")
        return ParsedValue(InferredType.STRING, stripped)

    # Datetime and JSON-like parsers hand back the text when nothing matched
    if isinstance(value, str) and kind is not InferredType.STRING:
        return ParsedValue(InferredType.STRING, value)
    return ParsedValue(kind, value)


def parse(text: str, target_type: InferredType | str | None = None) -> Any:
    """Parse command output into the appropriate Python value.

    See infer() for arguments; this returns only the value.
    """
    return infer(text, target_type).value


def as_table(
    text: str,
    delimiter: str | None = None,
    header: Sequence[str] | None = None,
) -> list[dict[str, str]]:
    """Parse delimited, line-oriented output into a list of records.

    Args:
        text: Command output, one row per line
        delimiter: Field delimiter (default from settings, a single space).
            Empty fields are dropped, so runs of delimiters act as one.
        header: Column names. When omitted the first line is the header.

    Returns:
        One dict per row whose field count matches the header. Rows with a
        different field count are dropped.
    """
    if delimiter is None:
        delimiter = get_table_delimiter()

    def split_fields(line: str) -> list[str]:
        return [field.strip() for field in line.split(delimiter) if field.strip()]

    lines = _non_empty_lines(text)
    if not lines:
        return []

    if header is None:
        columns = split_fields(lines.pop(0))
    else:
        columns = list(header)

    rows = []
    for line in lines:
        fields = split_fields(line)
        if len(fields) == len(columns):
            rows.append(dict(zip(columns, fields, strict=True)))
        else:
            logger.debug(
                "Dropping row with %d fields (expected %d): %r",
                len(fields),
                len(columns),
                line,
            )
    return rows


# ============================================================================
# Typed command execution
# ============================================================================


def run_typed(
    cmd: str, target_type: InferredType | str | None = None, **run_kwargs
) -> Any:
    """Execute a shell command and return its output as a Python value.

    Keyword arguments (ssh_host, timeout, env) go to the executor.

    Raises:
        CommandExecutionError: If the command exits non-zero.
    """
    return parse(capture_output(cmd, **run_kwargs), target_type=target_type)


def run_table(
    cmd: str,
    delimiter: str | None = None,
    header: Sequence[str] | None = None,
    **run_kwargs,
) -> list[dict[str, str]]:
    """Execute a shell command and parse its output with as_table()."""
    return as_table(capture_output(cmd, **run_kwargs), delimiter=delimiter, header=header)


def run_pretty(cmd: str, console: Console | None = None, **run_kwargs) -> Any:
    """Execute a shell command, print the typed result, and return it."""
    console = console or Console()
    parsed = infer(capture_output(cmd, **run_kwargs))
    result = parsed.value

    console.print(f"[bold]Command:[/bold] {escape(cmd)}")
    console.print(
        f"[bold]Type:[/bold] {parsed.type.value} ({type(result).__name__})"
    )

    if isinstance(result, list):
        table = Table(show_header=False, box=None)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Value")
        for i, item in enumerate(result, start=1):
            table.add_row(str(i), escape(str(item)))
        console.print(table)
    elif isinstance(result, dict):
        table = Table(show_header=False, box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in result.items():
            table.add_row(escape(str(key)), escape(str(value)))
        console.print(table)
    else:
        console.print(f"[bold]Result:[/bold] {escape(str(result))}")

    return result
