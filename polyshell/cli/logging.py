"""CLI logging configuration with file output.

Provides a shared ``configure_cli_logging`` function that sets up both
console and file logging for CLI commands.  Log files are split by
CLI command under the configured log directory
(``~/.local/share/polyshell/logs/`` unless ``POLYSHELL_LOG_DIR`` is set).

Usage from any CLI command::

    from polyshell.cli.logging import configure_cli_logging

    configure_cli_logging("run", verbose=verbose)
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from polyshell.cli.rich_output import should_use_rich
from polyshell.settings import get_log_dir


def get_log_file(command: str) -> Path:
    """Return the log file path for a given CLI command, creating its directory."""
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"{command}.log"


def configure_cli_logging(
    command: str,
    *,
    verbose: bool = False,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command with file output.

    Sets up:
    - File handler: DEBUG-level rotating log at ``<log-dir>/<command>.log``
    - Console handler on stderr: WARNING (or INFO if verbose), rendered
      with rich when the terminal supports it

    Args:
        command: CLI command name (e.g., "run", "typed")
        verbose: If True, set console to INFO level
        console_level: Override console level (takes precedence over verbose)
        file_level: File log level (default: DEBUG)
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated backups to keep

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command)

    root_logger = logging.getLogger("polyshell")

    # Remove existing handlers to avoid duplicates on repeated calls
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    # File handler: captures everything for diagnosis
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)

    if console_level is None:
        console_level = logging.INFO if verbose else logging.WARNING

    console_handler: logging.Handler
    if should_use_rich():
        console_handler = RichHandler(
            console=Console(stderr=True), show_path=False, markup=False
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter("%(levelname)s - %(name)s - %(message)s")
        )
    console_handler.setLevel(console_level)
    root_logger.addHandler(console_handler)

    # NOTSET (0) means "inherit from parent" which defaults to WARNING,
    # so the threshold must admit the most verbose handler.
    root_logger.setLevel(min(file_level, console_level))

    return log_file
