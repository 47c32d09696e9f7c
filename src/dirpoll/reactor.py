"""Turns the monitor's message stream into one decision per polling cycle."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .channel import ChangeChannel
from .events import CycleMarker

logger = logging.getLogger(__name__)

Action = Callable[[], None]


@dataclass
class ReactorStats:
    """Counters describing the cycles the reactor has seen."""

    cycles: int = 0
    change_cycles: int = 0


def _log_no_changes() -> None:
    logger.debug("No changes found")


class ChangeReactor:
    """Consumes a change channel and invokes an action once per cycle.

    Message content is never inspected beyond cycle marker identity; change
    events are only logged.
    """

    def __init__(
        self,
        on_changes_found: Action,
        on_no_changes_found: Optional[Action] = None,
        *,
        halt_on_error: bool = False,
        halt: Optional[Callable[[], None]] = None,
    ):
        if halt_on_error and halt is None:
            raise ValueError("halt_on_error requires a halt callback to stop the producer")
        self._on_changes_found = on_changes_found
        self._on_no_changes_found = on_no_changes_found or _log_no_changes
        self._halt_on_error = halt_on_error
        self._halt = halt
        self._stats = ReactorStats()
        self.failure: Optional[BaseException] = None

    @property
    def stats(self) -> ReactorStats:
        return self._stats

    def consume(self, channel: ChangeChannel) -> None:
        """Process messages until the channel is closed or an action halts us."""

        found_change = False
        in_cycle = False
        for message in channel:
            if message is CycleMarker.START:
                logger.debug("%s", message.value)
                found_change = False
                in_cycle = True
            elif message is CycleMarker.END:
                logger.debug("%s", message.value)
                if not in_cycle:
                    logger.warning("Cycle end received without a matching start")
                in_cycle = False
                self._stats.cycles += 1
                if found_change:
                    self._stats.change_cycles += 1
                    action = self._on_changes_found
                else:
                    action = self._on_no_changes_found
                if not self._safe_invoke(action):
                    break
            else:
                logger.info("%s", message)
                found_change = True
        logger.debug("Reactor finished after %s cycles", self._stats.cycles)

    def start(self, channel: ChangeChannel) -> threading.Thread:
        """Run ``consume`` on a dedicated background thread."""

        thread = threading.Thread(target=self.consume, args=(channel,), name="dirpoll-reactor", daemon=True)
        thread.start()
        return thread

    def _safe_invoke(self, action: Action) -> bool:
        try:
            action()
        except Exception as exc:
            logger.exception("Change action failed")
            if self._halt_on_error:
                self.failure = exc
                if self._halt is not None:
                    self._halt()
                return False
        return True
