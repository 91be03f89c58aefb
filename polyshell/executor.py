"""
Low-level command execution for local and remote systems.

This module is the command execution facility the rest of polyshell builds
on. Every call runs one command (or one stdin-fed script) to completion and
returns the ``(stdout, stderr, exit_code)`` triple.

Functions:
- run_full(): Execute command locally or via SSH, never raising on failure
- run_script(): Execute multi-line script via stdin
- run_or_raise(): Execute command, raise CommandExecutionError on failure
- capture_output(): stdout of a successful command
- is_local_host(): Check if ssh_host refers to local machine
"""

import logging
import socket
import subprocess
from collections.abc import Mapping
from functools import lru_cache
from typing import NamedTuple

from polyshell.exceptions import CommandExecutionError
from polyshell.settings import get_command_timeout, get_shell

logger = logging.getLogger(__name__)

# Exit code reported when a command is abandoned after its timeout
TIMEOUT_EXIT_CODE = -1

# Exit code reported when the interpreter itself cannot be started
NOT_FOUND_EXIT_CODE = 127

# PATH directories to prepend for SSH commands (non-interactive shells don't load full profile)
SSH_PATH_DIRS = ["$HOME/bin", "$HOME/.local/bin"]


class CommandResult(NamedTuple):
    """Captured outcome of a single command."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# ============================================================================
# Hostname Resolution
# ============================================================================


@lru_cache(maxsize=1)
def _get_local_hostnames() -> set[str]:
    """Get all hostnames that refer to this machine."""
    hostnames = {"local", "localhost", "127.0.0.1", "::1"}

    hostname = socket.gethostname()
    hostnames.add(hostname.lower())

    try:
        fqdn = socket.getfqdn()
        hostnames.add(fqdn.lower())
        hostnames.add(fqdn.split(".")[0].lower())
    except OSError:
        pass

    return hostnames


def is_local_host(ssh_host: str | None) -> bool:
    """Determine if an ssh_host refers to the local machine.

    Args:
        ssh_host: SSH host alias or hostname (None = local).
            Special value "local" explicitly means local execution.

    Returns:
        True if ssh_host refers to local machine
    """
    if ssh_host is None:
        return True
    return ssh_host.lower() in _get_local_hostnames()


def _prepend_path_setup(cmd: str) -> str:
    """Prepend PATH setup to command for non-interactive SSH shells."""
    path_dirs = ":".join(SSH_PATH_DIRS)
    return f'export PATH="{path_dirs}:$PATH" && {cmd}'


# ============================================================================
# Execution
# ============================================================================


def _execute(
    argv: list[str],
    label: str,
    input_text: str | None,
    timeout: int | None,
    env: Mapping[str, str] | None,
) -> CommandResult:
    """Run argv to completion and package the outcome as a CommandResult."""
    if timeout is None:
        timeout = get_command_timeout()

    logger.debug("Executing %s", label)
    try:
        result = subprocess.run(
            argv,
            input=input_text,
            # Closed stdin unless a script is fed on it
            stdin=subprocess.DEVNULL if input_text is None else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=dict(env) if env is not None else None,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out after {timeout}s: {label}")
        return CommandResult("", f"Command timed out after {timeout}s", TIMEOUT_EXIT_CODE)
    except FileNotFoundError as e:
        logger.warning(f"Interpreter not found for {label}: {e}")
        return CommandResult("", str(e), NOT_FOUND_EXIT_CODE)

    if result.returncode != 0:
        logger.debug(
            "%s exited with %d: %s", label, result.returncode, result.stderr[:500]
        )
    return CommandResult(result.stdout, result.stderr, result.returncode)


def run_full(
    cmd: str,
    ssh_host: str | None = None,
    timeout: int | None = None,
    env: Mapping[str, str] | None = None,
    shell: str | None = None,
) -> CommandResult:
    """Execute command locally or via SSH.

    Local commands run as ``<shell> -c cmd`` (shell from settings, bash by
    default). Remote commands run as ``ssh -T host cmd`` with ~/bin and
    ~/.local/bin added to PATH. stdin is closed, and output bytes that are
    not valid UTF-8 are replaced rather than raised.

    Args:
        cmd: Shell command to execute
        ssh_host: SSH host to connect to (None = local)
        timeout: Command timeout in seconds (None = configured default)
        env: Environment for local execution (None = inherit)
        shell: Local interpreter (None = configured shell)

    Returns:
        CommandResult with stdout, stderr and exit code. Non-zero exits,
        timeouts and a missing interpreter are reported in the result,
        never raised.
    """
    if is_local_host(ssh_host):
        argv = [shell or get_shell(), "-c", cmd]
    else:
        # -T disables pseudo-terminal allocation so .bashrc PTY hooks don't fire
        argv = ["ssh", "-T", ssh_host, _prepend_path_setup(cmd)]
    return _execute(argv, cmd, None, timeout, env)


def run_script(
    script: str,
    ssh_host: str | None = None,
    timeout: int | None = None,
    env: Mapping[str, str] | None = None,
    interpreter: str = "bash",
) -> CommandResult:
    """Execute a multi-line script via stdin.

    Args:
        script: Multi-line script to execute
        ssh_host: SSH host to connect to (None = local)
        timeout: Command timeout in seconds (None = configured default)
        env: Environment for local execution (None = inherit)
        interpreter: Interpreter to use ("bash", "python3", etc.)

    Returns:
        CommandResult with stdout, stderr and exit code
    """
    # For bash: use 'bash -s' to read from stdin
    # For python: use 'python3 -' to read from stdin
    if interpreter == "bash":
        interp_cmd = ["bash", "-s"]
    elif interpreter in ("python3", "python"):
        interp_cmd = [interpreter, "-"]
    else:
        interp_cmd = [interpreter]

    if is_local_host(ssh_host):
        argv = interp_cmd
    else:
        if interpreter == "bash":
            path_dirs = ":".join(SSH_PATH_DIRS)
            script = f'export PATH="{path_dirs}:$PATH"\n{script}'
        argv = ["ssh", "-T", ssh_host, " ".join(interp_cmd)]

    return _execute(argv, script[:100], script, timeout, env)


def run_or_raise(cmd: str, **kwargs) -> str:
    """Execute a command and return its stdout.

    Keyword arguments are forwarded to run_full().

    Raises:
        CommandExecutionError: If the command exits non-zero.
    """
    result = run_full(cmd, **kwargs)
    if not result.ok:
        raise CommandExecutionError(cmd, *result)
    return result.stdout


def capture_output(cmd: str, **kwargs) -> str:
    """Capture the stdout of a command as a string.

    Identical to run_or_raise(); named for call sites that only care about
    the output text.
    """
    return run_or_raise(cmd, **kwargs)
