"""Tests for CancelToken."""

from __future__ import annotations

import threading
import time

import pytest

from ovirt_launcher.errors import LaunchInterrupted
from ovirt_launcher.waiting import CancelToken


def test_sleep_returns_after_timeout():
    token = CancelToken()

    token.sleep(0.01)

    assert token.cancelled is False


def test_zero_sleep_does_not_block():
    CancelToken().sleep(0)


def test_cancel_wakes_pending_sleep():
    token = CancelToken()
    threading.Timer(0.05, token.cancel).start()
    started = time.monotonic()

    with pytest.raises(LaunchInterrupted):
        token.sleep(30)

    assert time.monotonic() - started < 5


def test_check_after_cancel():
    token = CancelToken()
    token.check()
    token.cancel()

    with pytest.raises(LaunchInterrupted):
        token.check()
    with pytest.raises(LaunchInterrupted):
        token.sleep(0)
