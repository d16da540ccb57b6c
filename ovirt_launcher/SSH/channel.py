"""The agent's communication channel and the process-wide connection registry."""

from __future__ import annotations

import logging
import threading

import paramiko

from ..log_sink import LaunchLog
from .remote_executor import RemoteExecutor

logger = logging.getLogger(__name__)

# Seconds to wait for an exit status when diagnosing a failed attach.
OUTCOME_WAIT = 3.0


class AgentChannel:
    """Duplex byte channel to a running agent process.

    `stdout` is what the agent writes, `stdin` is what the host sends it.
    Closing the channel also closes the SSH transport it runs on.
    """

    def __init__(self, executor: RemoteExecutor, session: paramiko.Channel):
        self.executor = executor
        self.session = session
        self.stdout = session.makefile("rb")
        self.stdin = session.makefile_stdin("wb")
        self.stderr = session.makefile_stderr("rb")
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.session.close()
        self.executor.close()

    def outcome_message(self, connection_lost: bool = False, wait: float = OUTCOME_WAIT) -> str:
        """Describe how the agent process ended, waiting briefly for its status."""
        self.session.status_event.wait(wait)
        if self.session.exit_status_ready():
            code = self.session.recv_exit_status()
            if code >= 0:
                return f"Agent has terminated. Exit code={code}"
            return "Agent has terminated without an exit code (killed by a signal?)"
        if connection_lost:
            return "Agent has not reported exit code before the socket was lost"
        return "Agent has not reported exit code. Is it still running?"


class StderrPump(threading.Thread):
    """Copy the agent's stderr into the launch log until EOF."""

    def __init__(self, channel: AgentChannel, log: LaunchLog):
        super().__init__(name="agent-stderr", daemon=True)
        self.channel = channel
        self.log = log

    def run(self) -> None:
        try:
            for line in self.channel.stderr:
                self.log.info(line.decode("utf-8", errors="replace").rstrip("\n"))
        except (OSError, EOFError, paramiko.SSHException) as e:
            logger.debug("stderr pump stopped: %s", e)


class ConnectionRegistry:
    """Live agent channels by node name, so the host can force-close them."""

    def __init__(self) -> None:
        self._channels: dict[str, AgentChannel] = {}
        self._lock = threading.Lock()

    def register(self, node_name: str, channel: AgentChannel) -> None:
        with self._lock:
            previous = self._channels.get(node_name)
            self._channels[node_name] = channel
        if previous is not None and previous is not channel:
            previous.close()

    def get(self, node_name: str) -> AgentChannel | None:
        with self._lock:
            return self._channels.get(node_name)

    def unregister(self, node_name: str) -> AgentChannel | None:
        with self._lock:
            return self._channels.pop(node_name, None)

    def close(self, node_name: str) -> bool:
        """Close and forget the channel for `node_name`; False if none was open."""
        channel = self.unregister(node_name)
        if channel is None:
            return False
        channel.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()

    def __contains__(self, node_name: object) -> bool:
        with self._lock:
            return node_name in self._channels


connections = ConnectionRegistry()
