"""Shared fixtures for polyshell tests."""

import shutil

import pytest

from polyshell import settings

requires_bash = pytest.mark.skipif(
    shutil.which("bash") is None, reason="bash not available"
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep CLI log files and cached settings out of the user's environment."""
    settings._load_pyproject_settings.cache_clear()
    monkeypatch.setenv("POLYSHELL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("POLYSHELL_RICH", "0")
    for name in (
        "POLYSHELL_SHELL",
        "POLYSHELL_COMMAND_TIMEOUT",
        "POLYSHELL_TABLE_DELIMITER",
        "POLYSHELL_VERBOSE",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    settings._load_pyproject_settings.cache_clear()
