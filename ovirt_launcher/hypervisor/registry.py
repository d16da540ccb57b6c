"""Process-wide lookup of configured hypervisors by name."""

from __future__ import annotations

import threading

from ..config.credentials import HypervisorCredentials
from ..errors import HypervisorNotFound
from .client import HypervisorClient


class HypervisorRegistry:
    """Hold one `HypervisorClient` per configured engine.

    Clients are created on first lookup and reused, so concurrent launches
    against the same engine share a single API session.
    """

    def __init__(self, creds: list[HypervisorCredentials] | None = None):
        self._creds = {c.name: c for c in creds or []}
        self._clients: dict[str, HypervisorClient] = {}
        self._lock = threading.Lock()

    def find(self, name: str) -> HypervisorClient:
        """Return the client for `name`.

        Raises:
            HypervisorNotFound: If no hypervisor with that name is configured.
        """
        with self._lock:
            client = self._clients.get(name)
            if client is None:
                if name not in self._creds:
                    raise HypervisorNotFound(f"Could not find hypervisor '{name}'")
                client = HypervisorClient(self._creds[name])
                self._clients[name] = client
            return client

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()
