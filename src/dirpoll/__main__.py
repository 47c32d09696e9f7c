"""Command-line entry point for the directory poller."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .channel import ChangeChannel
from .command import CommandError, CommandRunner
from .config import AppConfig, CommandConfig, ConfigError, MonitorConfig, load_config, split_patterns
from .monitor import DirectoryMonitor
from .reactor import ChangeReactor


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Poll a directory tree and run a command whenever something changes",
    )
    parser.add_argument("--config", help="Path to an optional YAML configuration file")
    parser.add_argument("--interval", type=float, help="Interval in seconds (default: 5)")
    parser.add_argument("--dir", help="Directory to monitor (default: ./)")
    parser.add_argument(
        "--no-traverse",
        action="store_true",
        default=None,
        help="Only scan the top-level directory, not the entire tree",
    )
    parser.add_argument(
        "--includes",
        help="File name patterns (no dir info) to include in the scan, comma separated (default: *)",
    )
    parser.add_argument(
        "--excludes",
        help="File or directory name patterns to exclude from the scan, comma separated",
    )
    parser.add_argument("--cd", help="Directory to run the command from")
    parser.add_argument("--command", help="Command to run upon finding a change in the monitored tree")
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Stop monitoring when the command fails",
    )
    parser.add_argument("-v", dest="debug", action="store_true", help="Turn on debug mode")
    parser.add_argument("-vv", dest="trace", action="store_true", help="Turn on trace mode")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    """Merge the optional configuration file with command-line overrides."""

    monitor_cfg: Optional[MonitorConfig] = None
    command_cfg: Optional[CommandConfig] = None
    if args.config:
        app_config = load_config(Path(args.config))
        monitor_cfg, command_cfg = app_config.monitor, app_config.command
    if monitor_cfg is None:
        monitor_cfg = MonitorConfig()

    monitor_changes = {}
    if args.dir is not None:
        monitor_changes["root_path"] = Path(args.dir)
    if args.interval is not None:
        monitor_changes["poll_interval"] = args.interval
    if args.no_traverse:
        monitor_changes["recursive"] = False
    if args.includes is not None:
        monitor_changes["include_patterns"] = split_patterns(args.includes, "--includes")
    if args.excludes is not None:
        monitor_changes["exclude_patterns"] = split_patterns(args.excludes, "--excludes")
    if args.trace:
        monitor_changes["trace"] = True
    monitor_cfg = dataclasses.replace(monitor_cfg, **monitor_changes)

    if args.command is not None:
        if not args.command.strip():
            raise ConfigError("--command must not be empty")
        base = command_cfg or CommandConfig(command=args.command)
        command_cfg = dataclasses.replace(base, command=args.command)
    if command_cfg is None:
        raise ConfigError("A command is required (--command or command.command in the config file)")

    command_changes = {}
    if args.cd is not None:
        command_changes["working_dir"] = Path(args.cd)
    if args.fail_fast:
        command_changes["fail_fast"] = True
    command_cfg = dataclasses.replace(command_cfg, **command_changes)

    return AppConfig(monitor=monitor_cfg, command=command_cfg)


def run(app_config: AppConfig) -> int:
    """Wire the monitor and reactor together and block until monitoring ends."""

    monitor = DirectoryMonitor(app_config.monitor)
    runner = CommandRunner(app_config.command)
    reactor = ChangeReactor(
        runner,
        halt_on_error=app_config.command.fail_fast,
        halt=monitor.stop,
    )
    logging.debug("DirectoryMonitor:  %s", monitor)
    logging.debug("ChangeHandler:     %s", runner)

    channel = ChangeChannel()
    handle = monitor.start(channel)
    reactor_thread = reactor.start(channel)
    try:
        while not handle.join(timeout=0.5):
            pass
    except KeyboardInterrupt:
        logging.info("Monitor interrupted by user")
        handle.stop()
        handle.join()
    reactor_thread.join()

    if handle.error is not None or reactor.failure is not None:
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = getattr(logging, args.log_level.upper(), logging.INFO)
    if args.debug or args.trace:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        app_config = resolve_config(args)
        exit_code = run(app_config)
    except (ConfigError, CommandError) as exc:
        logging.error("%s", exc)
        parser.print_usage(sys.stderr)
        raise SystemExit(2) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
