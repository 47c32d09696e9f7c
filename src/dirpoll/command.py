"""Runs the configured external command after a cycle that found changes."""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import List

from .config import CommandConfig

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when the configured command cannot be run or exits non-zero."""


class CommandRunner:
    """Callable wrapper around ``subprocess.run`` for the reactor."""

    def __init__(self, config: CommandConfig):
        self._config = config
        try:
            self._argv: List[str] = shlex.split(config.command)
        except ValueError as exc:
            raise CommandError(f"Could not parse command line {config.command!r}: {exc}") from exc
        if not self._argv:
            raise CommandError("Command line is empty")

    @property
    def argv(self) -> List[str]:
        return list(self._argv)

    def __call__(self) -> None:
        cwd = self._config.working_dir
        logger.info("Executing command: %s with args %s", self._argv[0], self._argv[1:])
        try:
            result = subprocess.run(
                self._argv,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                timeout=self._config.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(f"Command timed out after {exc.timeout}s: {self._config.command}") from exc
        except OSError as exc:
            raise CommandError(f"Could not run command {self._config.command!r}: {exc}") from exc

        if result.stdout:
            logger.info("%s", result.stdout.rstrip())
        if result.stderr:
            logger.warning("%s", result.stderr.rstrip())
        if result.returncode != 0:
            raise CommandError(f"Command failed (exit {result.returncode}): {self._config.command}")

    def __str__(self) -> str:
        return f"Directory [{self._config.working_dir or ''}]; Command [{self._config.command}]"
