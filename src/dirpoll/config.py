"""Configuration loading utilities for the directory poller."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml  # type: ignore


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file or flags are missing or invalid."""


@dataclass(frozen=True)
class MonitorConfig:
    """Options describing how the directory monitor should behave."""

    root_path: Path = Path("./")
    poll_interval: float = 5.0
    recursive: bool = True
    include_patterns: List[str] = field(default_factory=lambda: ["*"])
    exclude_patterns: List[str] = field(default_factory=list)
    trace: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigError("monitor.poll_interval must be positive")


@dataclass(frozen=True)
class CommandConfig:
    """The command to run after a polling cycle that found changes."""

    command: str
    working_dir: Optional[Path] = None
    timeout: Optional[float] = None
    fail_fast: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration structure."""

    monitor: MonitorConfig
    command: CommandConfig


def load_config(path: Path) -> AppConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    monitor_cfg = parse_monitor_config(data.get("monitor", {}), base_dir=path.parent)
    command_cfg = parse_command_config(data.get("command"), base_dir=path.parent)

    logger.debug("Loaded configuration from %s", path)
    return AppConfig(monitor=monitor_cfg, command=command_cfg)


def parse_monitor_config(raw: Any, *, base_dir: Path) -> MonitorConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'monitor' section must be a mapping")

    root_path_raw = raw.get("root_path", "./")
    if not isinstance(root_path_raw, str):
        raise ConfigError("monitor.root_path must be a string")

    root_path = Path(root_path_raw)
    if not root_path.is_absolute():
        root_path = (base_dir / root_path).resolve()

    poll_interval = raw.get("poll_interval", 5.0)
    if isinstance(poll_interval, bool):
        raise ConfigError("monitor.poll_interval must be numeric")
    try:
        poll_interval_val = float(poll_interval)
    except (TypeError, ValueError) as exc:
        raise ConfigError("monitor.poll_interval must be numeric") from exc

    recursive_flag = raw.get("recursive", True)
    if not isinstance(recursive_flag, bool):
        raise ConfigError("monitor.recursive must be a boolean")

    trace_flag = raw.get("trace", False)
    if not isinstance(trace_flag, bool):
        raise ConfigError("monitor.trace must be a boolean")

    include_patterns = split_patterns(raw.get("include_patterns", ["*"]), "monitor.include_patterns")
    exclude_patterns = split_patterns(raw.get("exclude_patterns", []), "monitor.exclude_patterns")

    return MonitorConfig(
        root_path=root_path,
        poll_interval=poll_interval_val,
        recursive=recursive_flag,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
        trace=trace_flag,
    )


def parse_command_config(raw: Any, *, base_dir: Path) -> CommandConfig:
    if isinstance(raw, str):
        raw = {"command": raw}
    if not isinstance(raw, dict):
        raise ConfigError("'command' section must be a mapping or a command string")

    command = raw.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigError("command.command must be a non-empty string")

    working_dir: Optional[Path] = None
    working_dir_raw = raw.get("working_dir")
    if working_dir_raw is not None:
        if not isinstance(working_dir_raw, str):
            raise ConfigError("command.working_dir must be a string")
        working_dir = Path(working_dir_raw)
        if not working_dir.is_absolute():
            working_dir = (base_dir / working_dir).resolve()

    timeout_val: Optional[float] = None
    timeout = raw.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool):
            raise ConfigError("command.timeout must be numeric")
        try:
            timeout_val = float(timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigError("command.timeout must be numeric") from exc
        if timeout_val <= 0:
            raise ConfigError("command.timeout must be positive")

    fail_fast = raw.get("fail_fast", False)
    if not isinstance(fail_fast, bool):
        raise ConfigError("command.fail_fast must be a boolean")

    return CommandConfig(
        command=command,
        working_dir=working_dir,
        timeout=timeout_val,
        fail_fast=fail_fast,
    )


def split_patterns(value: Any, field_name: str) -> List[str]:
    """Normalise a comma-separated string or list of globs into a list.

    Blank segments are dropped, so ``""`` yields an empty list.
    """

    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a string or a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        for part in elem.split(","):
            part = part.strip()
            if part:
                items.append(part)
    return items
