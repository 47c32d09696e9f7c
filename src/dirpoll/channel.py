"""Ordered handoff between the directory monitor and its consumer."""
from __future__ import annotations

import queue
import threading
from typing import Iterator, Optional

from .events import ChannelMessage

# How often blocked senders and receivers re-check the close/cancel flags.
_POLL_SECONDS = 0.05


class ChannelClosed(Exception):
    """Raised when sending on, or receiving from, a closed channel."""


class ChangeChannel:
    """Single-producer, single-consumer channel holding one in-flight message.

    A send blocks until the previous message has been taken by the consumer,
    which keeps the monitor paced to the reactor. Closing is done by the
    producer; anything sent before ``close()`` is still delivered.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[ChannelMessage]" = queue.Queue(maxsize=1)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: ChannelMessage, cancel: Optional[threading.Event] = None) -> bool:
        """Block until ``message`` is accepted; return False if cancelled first."""

        while True:
            if self._closed.is_set():
                raise ChannelClosed("send on closed channel")
            if cancel is not None and cancel.is_set():
                return False
            try:
                self._queue.put(message, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue

    def receive(self, timeout: Optional[float] = None) -> ChannelMessage:
        """Return the next message.

        Raises ``ChannelClosed`` once the channel is closed and drained and
        ``queue.Empty`` if ``timeout`` elapses first.
        """

        waited = 0.0
        while True:
            try:
                return self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if self._closed.is_set() and self._queue.empty():
                    raise ChannelClosed("channel closed") from None
                waited += _POLL_SECONDS
                if timeout is not None and waited >= timeout:
                    raise

    def close(self) -> None:
        self._closed.set()

    def __iter__(self) -> Iterator[ChannelMessage]:
        while True:
            try:
                yield self.receive()
            except ChannelClosed:
                return
