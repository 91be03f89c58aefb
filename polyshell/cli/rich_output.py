"""Automatic rich output detection for CLI commands.

Centralizes the decision of whether to use Rich rendering (tables, styled
log records) vs plain text. All CLI commands should call
``should_use_rich()`` instead of accepting a ``--no-rich`` flag.

Detection priority:
1. ``POLYSHELL_RICH`` env var: explicit override (``0``/``false``/``no``
   to disable, ``1``/``true``/``yes`` to force enable)
2. ``NO_COLOR`` env var: standard convention, disables rich
3. ``CI`` env var: CI runners, disables rich
4. ``stdout.isatty()``: false in pipes, redirects, cron, disables rich
"""

from __future__ import annotations

import os
import sys


def should_use_rich() -> bool:
    """Determine whether to use Rich interactive output."""
    override = os.environ.get("POLYSHELL_RICH", "").strip().lower()
    if override in ("0", "false", "no"):
        return False
    if override in ("1", "true", "yes"):
        return True

    if os.environ.get("NO_COLOR") is not None:
        return False

    if os.environ.get("CI"):
        return False

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False
