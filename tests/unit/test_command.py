"""Unit tests for the external command runner."""

import logging
import os
import shlex
import sys

import pytest
from dirpoll.command import CommandError, CommandRunner
from dirpoll.config import CommandConfig


def python_command(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class TestCommandRunner:
    """Test cases for CommandRunner."""

    def test_output_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="dirpoll.command")
        runner = CommandRunner(CommandConfig(command=python_command("print('rebuilt')")))

        runner()

        assert "rebuilt" in caplog.text
        assert "Executing command" in caplog.text

    def test_runs_in_working_directory(self, tmp_path):
        runner = CommandRunner(
            CommandConfig(
                command=python_command("import os; open('marker', 'w').write(os.getcwd())"),
                working_dir=tmp_path,
            )
        )

        runner()

        assert (tmp_path / "marker").exists()

    def test_working_directory_of_process_unchanged(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        other = tmp_path / "other"
        other.mkdir()
        runner = CommandRunner(CommandConfig(command=python_command("pass"), working_dir=other))

        runner()

        assert os.getcwd() == str(tmp_path)

    def test_non_zero_exit_raises(self):
        runner = CommandRunner(CommandConfig(command=python_command("import sys; sys.exit(3)")))

        with pytest.raises(CommandError, match="exit 3"):
            runner()

    def test_timeout_raises(self):
        runner = CommandRunner(CommandConfig(command=python_command("import time; time.sleep(5)"), timeout=0.2))

        with pytest.raises(CommandError, match="timed out"):
            runner()

    def test_missing_executable_raises(self):
        runner = CommandRunner(CommandConfig(command="definitely-not-a-real-dirpoll-binary --flag"))

        with pytest.raises(CommandError, match="Could not run"):
            runner()

    def test_argv_is_split_like_a_shell(self):
        runner = CommandRunner(CommandConfig(command='make "target with space" -j4'))

        assert runner.argv == ["make", "target with space", "-j4"]

    @pytest.mark.parametrize("command", ["", "   "])
    def test_empty_command_rejected(self, command):
        with pytest.raises(CommandError, match="empty"):
            CommandRunner(CommandConfig(command=command))

    def test_unbalanced_quotes_rejected(self):
        with pytest.raises(CommandError, match="Could not parse"):
            CommandRunner(CommandConfig(command='echo "oops'))

    def test_string_representation(self, tmp_path):
        runner = CommandRunner(CommandConfig(command="make", working_dir=tmp_path))

        assert str(runner) == f"Directory [{tmp_path}]; Command [make]"
