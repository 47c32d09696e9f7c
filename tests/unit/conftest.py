"""Shared fixtures for the unit tests."""

import threading

import pytest
from dirpoll.channel import ChangeChannel


@pytest.fixture
def channel():
    """A fresh change channel."""
    return ChangeChannel()


@pytest.fixture
def feed():
    """Return a helper that sends messages on a background thread, then closes the channel."""

    def _feed(channel, messages, cancel=None):
        def _produce():
            try:
                for message in messages:
                    if not channel.send(message, cancel=cancel):
                        break
            finally:
                channel.close()

        thread = threading.Thread(target=_produce, daemon=True)
        thread.start()
        return thread

    return _feed
