"""Networking helpers for quick reachability checks."""

from __future__ import annotations

import socket
import time


def tcp_reachable(
    host: str, port: int, timeout: float = 3.0
) -> tuple[bool, float | None, str | None]:
    """Attempt a TCP connection to an SSH port and measure latency.

    The server's identification line is read so that a port that accepts
    connections but is not an SSH server is reported as unreachable.

    Returns:
        (reachable, latency_ms, reason)
    """
    start = time.monotonic()
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            banner = sock.recv(256).decode("ascii", errors="replace")
    except OSError as e:
        return False, None, str(e)
    if not banner.startswith("SSH-"):
        return False, round(elapsed_ms, 2), f"Unexpected banner: {banner.strip()!r}"
    return True, round(elapsed_ms, 2), None
