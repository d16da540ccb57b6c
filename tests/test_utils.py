"""Tests for the SSH utility helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from ovirt_launcher.SSH.utils.masking import REDACTED, mask_value, redact
from ovirt_launcher.SSH.utils.network import tcp_reachable


class TestMasking:
    def test_mask_value(self):
        assert mask_value("secret") == "s*c*e*"
        assert mask_value(None) == ""

    def test_redact_replaces_every_occurrence(self):
        text = "PASS=hunter2\nOLD=hunter2x\n"

        assert redact(text, ["hunter2", None, ""]) == f"PASS={REDACTED}\nOLD={REDACTED}x\n"


class TestTcpReachable:
    def _socket(self, banner: bytes) -> MagicMock:
        sock = MagicMock(name="socket")
        sock.__enter__.return_value = sock
        sock.recv.return_value = banner
        return sock

    def test_ssh_banner_is_reachable(self):
        sock = self._socket(b"SSH-2.0-OpenSSH_9.6\r\n")
        with patch("ovirt_launcher.SSH.utils.network.socket.create_connection", return_value=sock):
            reachable, latency, reason = tcp_reachable("10.0.0.5", 22)

        assert reachable is True
        assert latency is not None
        assert reason is None

    def test_non_ssh_service(self):
        sock = self._socket(b"HTTP/1.1 400 Bad Request\r\n")
        with patch("ovirt_launcher.SSH.utils.network.socket.create_connection", return_value=sock):
            reachable, _, reason = tcp_reachable("10.0.0.5", 22)

        assert reachable is False
        assert "Unexpected banner" in reason

    def test_refused(self):
        with patch(
            "ovirt_launcher.SSH.utils.network.socket.create_connection",
            side_effect=ConnectionRefusedError("Connection refused"),
        ):
            assert tcp_reachable("10.0.0.5", 22) == (False, None, "Connection refused")
