"""Tests for the command execution facility."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from polyshell.exceptions import CommandExecutionError
from polyshell.executor import (
    NOT_FOUND_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    CommandResult,
    capture_output,
    is_local_host,
    run_full,
    run_or_raise,
    run_script,
)
from tests.conftest import requires_bash


def _completed(stdout="", stderr="", returncode=0):
    return MagicMock(stdout=stdout, stderr=stderr, returncode=returncode)


class TestIsLocalHost:
    """Tests for local host detection."""

    @pytest.mark.parametrize("host", [None, "local", "LOCAL", "localhost", "127.0.0.1"])
    def test_local_aliases(self, host):
        assert is_local_host(host) is True

    def test_own_hostname_is_local(self):
        import socket

        assert is_local_host(socket.gethostname()) is True

    def test_other_host_is_remote(self):
        assert is_local_host("definitely-not-this-machine.invalid") is False


class TestRunFull:
    """Tests for run_full()."""

    def test_local_uses_configured_shell(self):
        with patch("subprocess.run", return_value=_completed("hi\n")) as mock_run:
            result = run_full("echo hi")

        assert result == CommandResult("hi\n", "", 0)
        argv = mock_run.call_args[0][0]
        assert argv == ["bash", "-c", "echo hi"]
        assert mock_run.call_args.kwargs["timeout"] == 60

    def test_shell_override_from_env(self, monkeypatch):
        monkeypatch.setenv("POLYSHELL_SHELL", "sh")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_full("true")

        assert mock_run.call_args[0][0][0] == "sh"

    def test_timeout_override_from_env(self, monkeypatch):
        monkeypatch.setenv("POLYSHELL_COMMAND_TIMEOUT", "5")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_full("true")

        assert mock_run.call_args.kwargs["timeout"] == 5

    def test_remote_uses_ssh_with_path_prefix(self):
        with patch("subprocess.run", return_value=_completed("ok")) as mock_run:
            run_full("uptime", ssh_host="remote.invalid")

        argv = mock_run.call_args[0][0]
        assert argv[:3] == ["ssh", "-T", "remote.invalid"]
        assert argv[3].endswith("&& uptime")
        assert "$HOME/bin" in argv[3]

    def test_non_zero_exit_is_returned(self):
        with patch(
            "subprocess.run", return_value=_completed("", "nope\n", 2)
        ):
            stdout, stderr, exit_code = run_full("false")

        assert (stdout, stderr, exit_code) == ("", "nope\n", 2)

    def test_timeout_reported_in_result(self):
        with patch(
            "subprocess.run", side_effect=subprocess.TimeoutExpired("bash", 3)
        ):
            result = run_full("sleep 10", timeout=3)

        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert "timed out after 3s" in result.stderr
        assert not result.ok

    def test_missing_interpreter_reported_in_result(self):
        with patch("subprocess.run", side_effect=FileNotFoundError("no bash")):
            result = run_full("true")

        assert result.exit_code == NOT_FOUND_EXIT_CODE
        assert "no bash" in result.stderr

    def test_env_is_forwarded(self):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_full("env", env={"A": "1"})

        assert mock_run.call_args.kwargs["env"] == {"A": "1"}

    def test_stdin_closed_and_output_decoded_leniently(self):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_full("cat")

        kwargs = mock_run.call_args.kwargs
        assert kwargs["stdin"] is subprocess.DEVNULL
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"

    def test_shell_argument_overrides_settings(self, monkeypatch):
        monkeypatch.setenv("POLYSHELL_SHELL", "sh")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_full("true", shell="bash")

        assert mock_run.call_args[0][0][0] == "bash"


class TestRunScript:
    """Tests for run_script()."""

    def test_bash_script_via_stdin(self):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_script("echo a\necho b")

        assert mock_run.call_args[0][0] == ["bash", "-s"]
        assert mock_run.call_args.kwargs["input"] == "echo a\necho b"
        assert mock_run.call_args.kwargs["stdin"] is None

    def test_python_script_via_stdin(self):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_script("print(1)", interpreter="python3")

        assert mock_run.call_args[0][0] == ["python3", "-"]

    def test_remote_bash_script_gets_path_setup(self):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            run_script("echo a", ssh_host="remote.invalid")

        assert mock_run.call_args[0][0] == ["ssh", "-T", "remote.invalid", "bash -s"]
        script = mock_run.call_args.kwargs["input"]
        assert script.startswith('export PATH="$HOME/bin')
        assert script.endswith("\necho a")


class TestRunOrRaise:
    """Tests for the fail-on-non-zero wrappers."""

    def test_returns_stdout(self):
        with patch("subprocess.run", return_value=_completed("out\n")):
            assert run_or_raise("echo out") == "out\n"
            assert capture_output("echo out") == "out\n"

    def test_raises_with_structured_fields(self):
        with patch(
            "subprocess.run", return_value=_completed("partial", "bad thing", 42)
        ):
            with pytest.raises(CommandExecutionError) as excinfo:
                run_or_raise("exit 42")

        error = excinfo.value
        assert error.command == "exit 42"
        assert error.stdout == "partial"
        assert error.stderr == "bad thing"
        assert error.exit_code == 42
        assert "exit code 42" in str(error)
        assert "bad thing" in str(error)


@requires_bash
class TestRealBash:
    """Smoke tests against a real bash."""

    def test_echo(self):
        stdout, stderr, exit_code = run_full("echo success")

        assert exit_code == 0
        assert stdout.strip() == "success"
        assert stderr == ""

    def test_failure(self):
        assert run_full("exit 3").exit_code == 3

    def test_invalid_utf8_output_replaced(self):
        result = run_full("printf '\\xffok'")

        assert result.ok
        assert result.stdout == "\ufffdok"

    def test_stdin_is_empty(self):
        assert run_full("cat").stdout == ""

    def test_capture_output_raises(self):
        with pytest.raises(CommandExecutionError) as excinfo:
            capture_output("echo oops >&2; exit 1")

        assert excinfo.value.exit_code == 1
        assert "oops" in excinfo.value.stderr
