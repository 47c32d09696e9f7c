"""Poll a directory tree for changes and react once per polling cycle."""

from .channel import ChangeChannel, ChannelClosed
from .command import CommandError, CommandRunner
from .config import AppConfig, CommandConfig, ConfigError, MonitorConfig, load_config
from .events import ChangeEvent, ChangeType, CycleMarker
from .monitor import CacheEntry, DirectoryMonitor, MonitorHandle
from .reactor import ChangeReactor

__all__ = [
    "AppConfig",
    "CacheEntry",
    "ChangeChannel",
    "ChangeEvent",
    "ChangeReactor",
    "ChangeType",
    "ChannelClosed",
    "CommandConfig",
    "CommandError",
    "CommandRunner",
    "ConfigError",
    "CycleMarker",
    "DirectoryMonitor",
    "MonitorConfig",
    "MonitorHandle",
    "load_config",
]
