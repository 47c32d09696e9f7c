"""Filesystem monitoring loop with a simple polling backend."""
from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from .channel import ChangeChannel, ChannelClosed
from .config import MonitorConfig
from .events import ChangeEvent, ChangeType, ChannelMessage, CycleMarker

logger = logging.getLogger(__name__)

Emit = Callable[[ChangeEvent], None]


@dataclass(frozen=True)
class CacheEntry:
    """Metadata remembered for one path between walks.

    Only ``size`` takes part in change detection; ``mtime`` is only logged
    when a size change is found.
    """

    size: int
    mtime: float
    is_dir: bool

    @classmethod
    def from_stat(cls, stat: os.stat_result, *, is_dir: bool) -> "CacheEntry":
        return cls(size=stat.st_size, mtime=stat.st_mtime, is_dir=is_dir)


Cache = Dict[Path, CacheEntry]


@dataclass
class MonitorStats:
    """Counters emitted by the monitor for observability."""

    cycles: int = 0
    events_emitted: int = 0


class _Cancelled(Exception):
    """Internal: the monitor was stopped while a send was blocked."""


class DirectoryMonitor:
    """Polls a directory tree and reports changes against a cached snapshot."""

    def __init__(self, config: MonitorConfig):
        self._config = config
        self._stop_event = threading.Event()
        self._cache: Cache = {}
        self._children: Dict[Path, Set[Path]] = {}
        self._stats = MonitorStats()
        self.error: Optional[BaseException] = None

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    @property
    def cache(self) -> Cache:
        """Copy of the current snapshot."""
        return dict(self._cache)

    def warm_up(self) -> None:
        """Seed the cache without reporting anything."""

        logger.debug("Building initial cache for %s", self._config.root_path)
        self._walk(self._config.root_path, _discard)

    def scan(self) -> List[ChangeEvent]:
        """Run one walk-and-diff pass and return the events in emission order."""

        events: List[ChangeEvent] = []
        self._walk(self._config.root_path, events.append)
        return events

    def run(self, channel: ChangeChannel) -> None:
        """Run the monitoring loop until stopped or a walk fails.

        The channel is always closed on return.
        """

        logger.info("Starting monitor for %s", self._config.root_path)
        try:
            try:
                self.warm_up()
            except OSError as exc:
                self._fail(exc)
                return

            while not self._stop_event.is_set():
                started_at = time.monotonic()
                if not self._run_cycle(channel):
                    break
                self._stats.cycles += 1
                self._wait_until_next_cycle(started_at)
        except _Cancelled:
            logger.debug("Monitor cancelled while sending")
        except ChannelClosed:
            logger.warning("Change channel was closed by another party; stopping monitor")
        finally:
            channel.close()
            logger.info(
                "Monitor stopped after %s cycles, %s events",
                self._stats.cycles,
                self._stats.events_emitted,
            )

    def start(self, channel: ChangeChannel) -> "MonitorHandle":
        """Run the monitoring loop on a background thread."""

        thread = threading.Thread(target=self.run, args=(channel,), name="dirpoll-monitor", daemon=True)
        thread.start()
        return MonitorHandle(monitor=self, thread=thread)

    def stop(self) -> None:
        """Signal the monitor to stop at the next opportunity."""

        self._stop_event.set()

    def _run_cycle(self, channel: ChangeChannel) -> bool:
        def emit(event: ChangeEvent) -> None:
            self._send(channel, event)
            self._stats.events_emitted += 1

        self._send(channel, CycleMarker.START)
        error: Optional[OSError] = None
        try:
            self._walk(self._config.root_path, emit)
        except OSError as exc:
            error = exc
            self.error = exc
        self._send(channel, CycleMarker.END)

        if error is not None:
            self._fail(error)
            return False
        return True

    def _send(self, channel: ChangeChannel, message: ChannelMessage) -> None:
        if not channel.send(message, cancel=self._stop_event):
            raise _Cancelled()

    def _fail(self, exc: OSError) -> None:
        logger.error("Caught fatal error: %s", exc)
        self.error = exc
        self._stop_event.set()

    def _wait_until_next_cycle(self, started_at: float) -> None:
        elapsed = time.monotonic() - started_at
        remaining = max(self._config.poll_interval - elapsed, 0.0)
        if remaining > 0:
            self._stop_event.wait(remaining)

    def _walk(self, directory: Path, emit: Emit) -> None:
        logger.debug("Processing directory %s", directory)
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)

        for entry in entries:
            path = Path(entry.path)
            if self._is_excluded(entry.name):
                logger.debug("Skipping excluded %s", path)
                continue

            if entry.is_dir(follow_symlinks=False):
                if self._config.recursive:
                    self._walk(path, emit)
                else:
                    self._check_directory(path, emit)
                continue

            cached = self._cache.get(path)
            if cached is not None and cached.is_dir:
                # A directory was replaced by a file.
                self._evict_subtree(path)

            if not self._is_included(entry.name):
                logger.debug("Skipping %s", path)
                continue
            self._check_file(path, entry.stat(follow_symlinks=False), emit)

        self._check_directory(directory, emit)

    def _check_file(self, path: Path, stat: os.stat_result, emit: Emit) -> None:
        cached = self._cache.get(path)
        if cached is None:
            change_type = ChangeType.NEW_FILE
        elif cached.size != stat.st_size:
            logger.debug(
                "%s size %s -> %s, mtime %s -> %s",
                path,
                cached.size,
                stat.st_size,
                cached.mtime,
                stat.st_mtime,
            )
            change_type = ChangeType.MODIFIED_FILE
        else:
            return
        emit(ChangeEvent(change_type, path))
        self._remember(path, CacheEntry.from_stat(stat, is_dir=False))

    def _check_directory(self, directory: Path, emit: Emit) -> None:
        cached = self._cache.get(directory)
        if cached is None or not cached.is_dir:
            emit(ChangeEvent(ChangeType.NEW_DIRECTORY, directory))
            self._remember(directory, CacheEntry.from_stat(directory.stat(), is_dir=True))
            return
        self._check_removed_children(directory, emit)

    def _check_removed_children(self, directory: Path, emit: Emit) -> None:
        children = sorted(path for path in self._children.get(directory, ()) if path != directory)
        removed = False
        for child in children:
            try:
                os.lstat(child)
            except FileNotFoundError:
                emit(ChangeEvent(ChangeType.REMOVED_ITEM, child))
                self._evict_subtree(child)
                removed = True
        if removed:
            # The directory is re-reported as new on the following walk.
            self._cache.pop(directory, None)

    def _remember(self, path: Path, entry: CacheEntry) -> None:
        self._cache[path] = entry
        self._children.setdefault(path.parent, set()).add(path)

    def _evict_subtree(self, path: Path) -> None:
        self._cache.pop(path, None)
        siblings = self._children.get(path.parent)
        if siblings is not None:
            siblings.discard(path)
        for child in self._children.pop(path, set()):
            if child != path:
                self._evict_subtree(child)

    def _is_included(self, name: str) -> bool:
        if not self._config.include_patterns:
            return True
        return self._matches_any(name, self._config.include_patterns, "include")

    def _is_excluded(self, name: str) -> bool:
        return self._matches_any(name, self._config.exclude_patterns, "exclude")

    def _matches_any(self, name: str, patterns: List[str], kind: str) -> bool:
        for pattern in patterns:
            if self._config.trace:
                logger.debug("Checking %s pattern %s for %s", kind, pattern, name)
            if match_pattern(name, pattern):
                if self._config.trace:
                    logger.debug(" > %s matched pattern %s", kind, pattern)
                return True
        return False

    def __str__(self) -> str:
        cfg = self._config
        return (
            f"Directory [{cfg.root_path}]; Recursive [{cfg.recursive}]; Interval [{cfg.poll_interval}]; "
            f"IncludePatterns [{','.join(cfg.include_patterns)}]; ExcludePatterns [{','.join(cfg.exclude_patterns)}]"
        )


@dataclass
class MonitorHandle:
    """Cancellation handle for a monitor running on a background thread."""

    monitor: DirectoryMonitor
    thread: threading.Thread

    @property
    def is_running(self) -> bool:
        return self.thread.is_alive()

    @property
    def error(self) -> Optional[BaseException]:
        return self.monitor.error

    def stop(self) -> None:
        self.monitor.stop()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the monitor thread; return True once it has finished."""

        self.thread.join(timeout)
        return not self.thread.is_alive()


def match_pattern(name: str, pattern: str) -> bool:
    """Match a basename against one shell glob; a malformed glob never matches."""

    if is_malformed_pattern(pattern):
        logger.debug("Ignoring malformed pattern %r", pattern)
        return False
    return fnmatchcase(name, pattern)


def is_malformed_pattern(pattern: str) -> bool:
    """True for a trailing backslash or a character class with no closing bracket."""

    if pattern.endswith("\\"):
        return True
    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] == "[":
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close == -1:
                return True
            i = close
        i += 1
    return False


def _discard(event: ChangeEvent) -> None:
    pass
