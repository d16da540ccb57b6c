"""Cancellable timed waits used by every poll loop in the pipeline."""

from __future__ import annotations

import threading

from .errors import LaunchInterrupted


class CancelToken:
    """A cancellation signal shared by one launch and the waits it performs.

    `sleep` blocks on the underlying event instead of the clock, so a call to
    `cancel()` from another thread wakes every pending wait immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """Raise `LaunchInterrupted` if the token has been cancelled."""
        if self._event.is_set():
            raise LaunchInterrupted("Launch was interrupted")

    def sleep(self, seconds: float) -> None:
        """Wait for `seconds`, raising `LaunchInterrupted` on cancellation."""
        self.check()
        if seconds > 0 and self._event.wait(seconds):
            raise LaunchInterrupted("Launch was interrupted while waiting")
