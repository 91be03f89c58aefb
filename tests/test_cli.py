"""Smoke tests for the modular CLI.

These tests verify that the CLI modules import correctly, that the
commands are registered on the main group, and that each command wires
its options through to the library.
"""

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from polyshell import __version__
from polyshell.cli import main
from polyshell.exceptions import CommandExecutionError
from tests.conftest import requires_bash


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_cli_logging():
    """Drop handlers bound to CliRunner's temporary streams."""
    yield
    polyshell_logger = logging.getLogger("polyshell")
    for handler in polyshell_logger.handlers[:]:
        polyshell_logger.removeHandler(handler)
        handler.close()
    polyshell_logger.setLevel(logging.NOTSET)


class TestCLIImports:
    """Test that all CLI modules can be imported."""

    def test_import_main(self):
        """Main CLI entry point can be imported."""
        assert main is not None
        assert hasattr(main, "commands")

    def test_commands_registered(self):
        """All commands are attached to the main group."""
        assert {"run", "split", "script", "typed", "table", "detect"} <= set(
            main.commands
        )

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert result.output.strip() == __version__

    def test_no_command_shows_help(self, runner):
        result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "polyshell run" in result.output


class TestDetectCommand:
    """Tests for `polyshell detect`."""

    def test_detect_argument(self, runner):
        result = runner.invoke(main, ["detect", "3.14"])

        assert result.exit_code == 0
        assert result.output == "float\n"

    def test_detect_stdin(self, runner):
        result = runner.invoke(main, ["detect"], input="1\n2\n3\n")

        assert result.exit_code == 0
        assert result.output == "int_array\n"


class TestSplitCommand:
    """Tests for `polyshell split`."""

    def test_split_string(self, runner):
        result = runner.invoke(main, ["split", "--string", "a = 1\n#B> ls -l"])

        assert result.exit_code == 0
        assert "Blocks (2)" in result.output
        assert "python" in result.output
        assert "bash" in result.output

    def test_split_file(self, runner, tmp_path):
        source = tmp_path / "job.sh"
        source.write_text("ls\n# PYTHON_BEGIN\nx = 1\n# PYTHON_END\npwd\n")

        result = runner.invoke(main, ["split", str(source)])

        assert result.exit_code == 0
        assert "Blocks (3)" in result.output

    def test_split_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["split", str(tmp_path / "missing.py")])

        assert result.exit_code == 1
        assert "Cannot read polyglot file" in result.output


class TestRunCommand:
    """Tests for `polyshell run`."""

    def test_requires_file_or_code(self, runner):
        result = runner.invoke(main, ["run"])

        assert result.exit_code == 2
        assert "exactly one of FILE or --code" in result.output

    def test_python_only_code_with_show_env(self, runner):
        result = runner.invoke(main, ["run", "-c", "answer = 6 * 7", "--show-env"])

        assert result.exit_code == 0
        assert "answer" in result.output
        assert "42" in result.output

    def test_python_failure_is_reported(self, runner):
        result = runner.invoke(main, ["run", "-c", "1 / 0"])

        assert result.exit_code == 1
        assert "Python block failed" in result.output
        assert "ZeroDivisionError" in result.output

    def test_log_file_written(self, runner, tmp_path):
        result = runner.invoke(main, ["run", "-c", "x = 1", "-v"])

        assert result.exit_code == 0
        assert (tmp_path / "logs" / "run.log").exists()

    def test_verbose_setting_applies_without_flag(self, runner, monkeypatch, tmp_path):
        monkeypatch.setenv("POLYSHELL_VERBOSE", "1")

        result = runner.invoke(main, ["run", "-c", "x = 1"])

        assert result.exit_code == 0
        log_text = (tmp_path / "logs" / "run.log").read_text()
        assert "Executing python block 0" in log_text

    def test_verbose_setting_off_without_flag(self, runner, tmp_path):
        result = runner.invoke(main, ["run", "-c", "x = 1"])

        assert result.exit_code == 0
        log_text = (tmp_path / "logs" / "run.log").read_text()
        assert "Executing python block" not in log_text

    def test_undecodable_file_reported(self, runner, tmp_path):
        source = tmp_path / "binary.py"
        source.write_bytes(b"\xff\xfe\n")

        result = runner.invoke(main, ["run", str(source)])

        assert result.exit_code == 1
        assert "Cannot read polyglot file" in result.output
        assert "Python block failed" not in result.output

    @requires_bash
    def test_bash_output_echoed(self, runner):
        result = runner.invoke(main, ["run", "-c", "x = 7\n#B> echo value=$x"])

        assert result.exit_code == 0
        assert "value=7" in result.output

    @requires_bash
    def test_bash_failure_warns_and_continues(self, runner):
        result = runner.invoke(
            main, ["run", "-c", "#B> exit 3\ny = 2", "--show-env"]
        )

        assert result.exit_code == 0
        assert "1 of 2 block(s) failed" in result.output
        assert "y" in result.output

    @requires_bash
    def test_run_file(self, runner, tmp_path):
        source = tmp_path / "job.py"
        source.write_text("n = 3\n# BASH_BEGIN\necho n=$n\n# BASH_END\n")

        result = runner.invoke(main, ["run", str(source)])

        assert result.exit_code == 0
        assert "n=3" in result.output


class TestScriptCommand:
    """Tests for `polyshell script`."""

    def test_creates_script(self, runner, tmp_path):
        source = tmp_path / "source.txt"
        source.write_text("x = 1\n#B> echo $x\n")
        output = tmp_path / "run_me.py"

        result = runner.invoke(main, ["script", str(output), str(source)])

        assert result.exit_code == 0
        assert output.exists()
        assert "Created executable polyglot script" in result.output


class TestTypedCommand:
    """Tests for `polyshell typed`."""

    def test_detected_type_printed(self, runner):
        with patch("polyshell.formatters.capture_output", return_value="1\n2\n3\n"):
            result = runner.invoke(main, ["typed", "seq 1 3"])

        assert result.exit_code == 0
        assert "int_array" in result.output

    def test_forced_type(self, runner):
        with patch(
            "polyshell.formatters.capture_output", return_value="42\n"
        ) as mock_capture:
            result = runner.invoke(
                main, ["typed", "echo 42", "--type", "float", "--timeout", "9"]
            )

        assert result.exit_code == 0
        assert "42.0" in result.output
        mock_capture.assert_called_once_with("echo 42", ssh_host=None, timeout=9)

    def test_invalid_type_rejected(self, runner):
        result = runner.invoke(main, ["typed", "echo 1", "--type", "complex"])

        assert result.exit_code == 2

    def test_command_failure(self, runner):
        error = CommandExecutionError("false", "", "boom", 1)
        with patch("polyshell.formatters.capture_output", side_effect=error):
            result = runner.invoke(main, ["typed", "false"])

        assert result.exit_code == 1
        assert "Command exited with code 1: boom" in result.output


class TestTableCommand:
    """Tests for `polyshell table`."""

    def test_renders_rows(self, runner):
        with patch(
            "polyshell.formatters.capture_output",
            return_value="NAME SIZE\nalpha 10\nbeta 20\n",
        ):
            result = runner.invoke(main, ["table", "ls -s"])

        assert result.exit_code == 0
        assert "NAME" in result.output
        assert "alpha" in result.output
        assert "beta" in result.output

    def test_custom_delimiter_and_header(self, runner):
        with patch(
            "polyshell.formatters.capture_output", return_value="a,1\nb,2\n"
        ):
            result = runner.invoke(
                main, ["table", "cat data.csv", "-d", ",", "--header", "key, value"]
            )

        assert result.exit_code == 0
        assert "key" in result.output
        assert "value" in result.output
        assert "a" in result.output

    def test_no_rows(self, runner):
        with patch("polyshell.formatters.capture_output", return_value="\n"):
            result = runner.invoke(main, ["table", "true"])

        assert result.exit_code == 0
        assert "No rows parsed" in result.output
