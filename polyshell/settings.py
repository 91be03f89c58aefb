"""Project settings loaded from pyproject.toml [tool.polyshell] section.

Recognised keys:
  [tool.polyshell]
  shell           : interpreter used for local commands (default: bash)
  command-timeout : seconds before a command is abandoned (default: 60)
  table-delimiter : default field delimiter for table parsing (default: " ")
  log-dir         : directory for CLI log files
  verbose         : default verbosity for polyglot runs

All settings support environment variable overrides (POLYSHELL_* prefix).
"""

import importlib.resources
import os
from functools import cache
from pathlib import Path

import tomllib


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.polyshell] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        # Try package resources first (installed package)
        files = importlib.resources.files("polyshell")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        # Walk up to find pyproject.toml (for development)
        if not pyproject_path.is_file():  # type: ignore[union-attr]
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        data = tomllib.loads(pyproject_path.read_text())  # type: ignore[union-attr]
        return data.get("tool", {}).get("polyshell", {})
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def _parse_bool(value: str | bool) -> bool:
    """Parse a boolean value from string or bool."""
    if isinstance(value, bool):
        return value
    return value.lower() in ("true", "1", "yes")


# ─── Execution settings ────────────────────────────────────────────────────


def get_shell() -> str:
    """Get the interpreter used to run local shell commands.

    Priority: POLYSHELL_SHELL env → [tool.polyshell].shell → 'bash'.
    """
    if env := os.getenv("POLYSHELL_SHELL"):
        return env
    return str(_load_pyproject_settings().get("shell", "bash"))


def get_command_timeout() -> int:
    """Get the default command timeout in seconds.

    Priority: POLYSHELL_COMMAND_TIMEOUT env → [tool.polyshell].command-timeout → 60.
    """
    if env := os.getenv("POLYSHELL_COMMAND_TIMEOUT"):
        return int(env)
    return int(_load_pyproject_settings().get("command-timeout", 60))


def get_table_delimiter() -> str:
    """Get the default field delimiter for table parsing.

    Priority: POLYSHELL_TABLE_DELIMITER env → [tool.polyshell].table-delimiter → ' '.
    """
    if env := os.getenv("POLYSHELL_TABLE_DELIMITER"):
        return env
    return str(_load_pyproject_settings().get("table-delimiter", " "))


def get_verbose() -> bool:
    """Whether polyglot runs log each block by default.

    Priority: POLYSHELL_VERBOSE env → [tool.polyshell].verbose → False.
    """
    if env := os.getenv("POLYSHELL_VERBOSE"):
        return _parse_bool(env)
    return _parse_bool(_load_pyproject_settings().get("verbose", False))


# ─── Logging settings ──────────────────────────────────────────────────────

# Standard log directory follows XDG convention
_DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "polyshell" / "logs"


def get_log_dir() -> Path:
    """Get the CLI log directory (not created here).

    Priority: POLYSHELL_LOG_DIR env → [tool.polyshell].log-dir → XDG default.
    """
    if env := os.getenv("POLYSHELL_LOG_DIR"):
        return Path(env).expanduser()
    configured = _load_pyproject_settings().get("log-dir")
    return Path(configured).expanduser() if configured else _DEFAULT_LOG_DIR
