"""Exception types raised by polyshell."""


class PolyshellError(Exception):
    """Base class for all polyshell errors."""


class CommandExecutionError(PolyshellError):
    """Raised when a shell command exits with a non-zero status.

    Carries everything needed to diagnose the failure without re-running
    the command: the command text, both captured streams, and the exit code.
    """

    def __init__(self, command: str, stdout: str, stderr: str, exit_code: int):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(
            f"Command failed with exit code {exit_code}.\n"
            f"  Command: {command}\n"
            f"  STDERR: {stderr.strip()}"
        )


class OutputParseError(PolyshellError, ValueError):
    """Raised when command output cannot be converted to the requested type."""

    def __init__(self, text: str, target_type: str, message: str | None = None):
        self.text = text
        self.target_type = target_type
        super().__init__(message or f"Cannot parse {text!r} as {target_type}")


class PolyglotError(PolyshellError):
    """Raised when a polyglot source cannot be read."""
