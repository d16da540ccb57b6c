"""Per-launch build log.

The host hands each launch a text stream (its build log). `LaunchLog` writes
progress lines there and mirrors them to the module logger, so operators see
the same causal chain in the service log.
"""

from __future__ import annotations

import io
import logging
import threading
import traceback
from typing import TextIO

logger = logging.getLogger(__name__)


class LaunchLog:
    """Line-oriented sink for one launch.

    Args:
        stream: Where lines are printed. Defaults to an in-memory buffer so
            the text can be returned to the caller afterwards.
        name: Prefix used in the mirrored logger records (usually the node).
    """

    def __init__(self, stream: TextIO | None = None, name: str | None = None):
        self.stream = stream if stream is not None else io.StringIO()
        self.name = name
        self._lock = threading.Lock()

    def _write(self, text: str) -> None:
        with self._lock:
            print(text, file=self.stream, flush=True)

    def _prefixed(self, text: str) -> str:
        return f"[{self.name}] {text}" if self.name else text

    def info(self, text: str) -> None:
        self._write(text)
        logger.info(self._prefixed(text))

    def error(self, text: str) -> None:
        self._write(f"ERROR: {text}")
        logger.error(self._prefixed(text))

    def exception(self, text: str, exc: BaseException) -> None:
        """Write `text` followed by the formatted chain of `exc`."""
        self.error(f"{text}: {exc}")
        chain = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        self._write(chain.rstrip())

    def getvalue(self) -> str:
        """Return everything written so far, if the stream is a buffer."""
        if isinstance(self.stream, io.StringIO):
            return self.stream.getvalue()
        return ""
