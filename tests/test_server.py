"""Tests for server teardown."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import ovirt_launcher.server as server
from ovirt_launcher.SSH.channel import connections


def test_shutdown_closes_channels_and_registry():
    registry = MagicMock(name="HypervisorRegistry")
    channel = MagicMock(name="AgentChannel")
    connections.register("build-01", channel)

    with patch.object(server, "_registry", registry):
        server.shutdown()

        assert server._registry is None

    channel.close.assert_called_once()
    registry.close.assert_called_once()
    assert "build-01" not in connections


def test_shutdown_without_registry_is_harmless():
    with patch.object(server, "_registry", None):
        server.shutdown()

        assert server._registry is None
