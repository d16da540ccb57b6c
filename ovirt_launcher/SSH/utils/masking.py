"""Masking helpers for safe logging/debugging.

These utilities avoid accidentally leaking secrets in logs.
"""

from __future__ import annotations

from typing import Iterable

REDACTED = "********"


def mask_value(value: str | None) -> str:
    """Mask a value by replacing every other character with "*".

    Args:
        value: A string to mask, or None.

    Returns:
        A masked representation; empty string if value is falsy.
    """
    if not value:
        return ""
    return "".join("*" if i % 2 else c for i, c in enumerate(value))


def redact(text: str, secrets: Iterable[str | None]) -> str:
    """Replace every occurrence of each non-empty secret in `text`.

    Used on remote output (e.g. an environment dump) before it reaches the
    build log.
    """
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
