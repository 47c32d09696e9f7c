"""Event models passed from the monitor to the reactor."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union


class ChangeType(str, Enum):
    """Kinds of change the monitor reports."""

    NEW_FILE = "new_file"
    MODIFIED_FILE = "modified_file"
    NEW_DIRECTORY = "new_directory"
    REMOVED_ITEM = "removed_item"


class CycleMarker(str, Enum):
    """Boundaries of one polling cycle on the change channel."""

    START = "--- STARTING TO MONITOR FOR CHANGES ---"
    END = "--- DONE MONITORING CHANGES ---"


_DESCRIPTIONS = {
    ChangeType.NEW_FILE: "Found new file",
    ChangeType.MODIFIED_FILE: "Found modified file",
    ChangeType.NEW_DIRECTORY: "Found new directory",
    ChangeType.REMOVED_ITEM: "Found removed file or directory",
}


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed in the watched directory tree."""

    change_type: ChangeType
    path: Path

    def describe(self) -> str:
        return f"{_DESCRIPTIONS[self.change_type]}: {self.path}"

    def __str__(self) -> str:
        return self.describe()


ChannelMessage = Union[CycleMarker, ChangeEvent]
