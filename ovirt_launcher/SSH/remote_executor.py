"""Paramiko-based SSH transport for bootstrapping build agents.

This module provides a `RemoteExecutor` class that opens an SSH transport
with bounded connect retries, authenticates with a password, executes
commands and opens the long-lived session the agent runs in. Connecting and
authenticating are separate steps because they fail differently: connect
errors are retried, authentication errors never are.
"""

from __future__ import annotations

import logging
import shlex
import socket
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType

import paramiko

from ..errors import AuthenticationFailed, TransportConnectFailed
from ..log_sink import LaunchLog
from ..waiting import CancelToken
from .utils.masking import mask_value

logger = logging.getLogger(__name__)


class RemoteExecutor:
    """
    SSH wrapper used for one agent bootstrap.

    Usage:
        with RemoteExecutor("10.0.0.5", "jenkins", password=PASSWORD) as rx:
            out, err, rc = rx.run("uname -a")
            session = rx.open_session(window_size=4 * 1024 * 1024)
    """

    def __init__(
        self,
        hostname: str,
        username: str,
        *,
        port: int = 22,
        password: str | None = None,
        timeout: float | None = 15.0,
        max_retries: int = 5,
        retry_wait: float = 30,
        cancel: CancelToken | None = None,
        log: LaunchLog | None = None,
    ):
        """Create a new `RemoteExecutor`.

        Args:
            hostname: Target host (DNS or IP).
            username: SSH username.
            port: SSH port, default 22.
            password: Password to authenticate with.
            timeout: Socket and handshake timeout in seconds.
            max_retries: Extra connect attempts after the first one fails.
            retry_wait: Seconds between connect attempts.
            cancel: Token that aborts the wait between attempts.
            log: Launch log for progress lines.
        """
        self.hostname = hostname
        self.username = username
        self.port = port
        self.password = password
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_wait = retry_wait
        self.cancel = cancel or CancelToken()
        self.log = log or LaunchLog()

        self._sock: socket.socket | None = None
        self._transport: paramiko.Transport | None = None

    def __enter__(self) -> "RemoteExecutor":
        self.connect()
        self.authenticate()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def transport(self) -> paramiko.Transport:
        if self._transport is None:
            raise TransportConnectFailed(f"Not connected to {self.hostname}:{self.port}")
        return self._transport

    @property
    def connected(self) -> bool:
        return self._transport is not None and self._transport.is_active()

    def connect(self) -> None:
        """Open the SSH transport, retrying I/O failures.

        Raises:
            TransportConnectFailed: After `max_retries` further attempts failed.
        """
        if self.connected:
            return

        for attempt in range(self.max_retries + 1):
            try:
                self._open_transport()
                return
            except (OSError, paramiko.SSHException, EOFError) as e:
                self._drop_transport()
                left = self.max_retries - attempt
                if left > 0:
                    self.log.info(
                        f'SSH Connection failed with IOException: "{e}", retrying in '
                        f"{self.retry_wait:g} seconds.  There are {left} more retries left."
                    )
                    self.cancel.sleep(self.retry_wait)
                else:
                    self.log.info(f'SSH Connection failed with IOException: "{e}".')
                    raise TransportConnectFailed(
                        f"SSH Connection failed to {self.hostname}:{self.port}: {e}"
                    ) from e

    def _open_transport(self) -> None:
        sock = socket.create_connection((self.hostname, self.port), timeout=self.timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock
        transport = paramiko.Transport(sock)
        self._transport = transport
        transport.start_client(timeout=self.timeout)

    def _drop_transport(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def authenticate(self) -> None:
        """Authenticate with username/password. Never retried.

        Raises:
            AuthenticationFailed: If the server rejects the credentials.
        """
        transport = self.transport
        try:
            transport.auth_password(self.username, self.password or "")
        except paramiko.AuthenticationException as e:
            logger.debug(
                "Authentication rejected. HOST=%s, USERNAME=%s, PORT=%s",
                mask_value(self.hostname),
                mask_value(self.username),
                self.port,
            )
            self.log.info("Authentication failed")
            raise AuthenticationFailed(
                f"SSH Authentication failed for {self.username}@{self.hostname}: {e}"
            ) from e
        except paramiko.SSHException as e:
            self.log.info("Authentication failed")
            raise AuthenticationFailed(
                f"SSH Authentication aborted for {self.username}@{self.hostname}: {e}"
            ) from e

        if not transport.is_authenticated():
            self.log.info("Authentication failed")
            raise AuthenticationFailed(f"SSH Authentication incomplete for {self.username}@{self.hostname}")
        self.log.info("Authentication successful")

    def close(self) -> None:
        """Close the SSH transport if it is open. Safe to call repeatedly."""
        self._drop_transport()

    def run(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> tuple[str, str, int]:
        """
        Execute a command on the remote host through the user's default shell.

        Returns:
            (stdout, stderr, returncode)
        """
        prepared_cmd = self._prepare_command(command, cwd=cwd, env=env)

        channel = self.transport.open_session(timeout=timeout)
        # stderr is read on its own thread: a remote process blocked on a
        # full stderr window never closes stdout.
        drain = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ssh-stderr")
        try:
            channel.settimeout(timeout)
            channel.exec_command(prepared_cmd)
            # Ensure we don't hold STDIN open on the remote process
            channel.shutdown_write()
            stderr = drain.submit(channel.makefile_stderr("rb").read)
            out = channel.makefile("rb").read().decode("utf-8", errors="replace")
            err = stderr.result().decode("utf-8", errors="replace")
            exit_status = channel.recv_exit_status()
        finally:
            channel.close()
            drain.shutdown(wait=False)
        return out, err, exit_status

    def put_file(
        self,
        data: bytes,
        remote_dir: str,
        file_name: str,
        *,
        mode: str = "0644",
    ) -> None:
        """Write `data` to `remote_dir/file_name` by streaming it into `cat`.

        Needs nothing on the remote side beyond a POSIX shell, which makes it
        the fallback when the SFTP subsystem is unavailable.

        Raises:
            OSError: If the remote command exits non-zero.
        """
        remote_path = f"{remote_dir}/{file_name}"
        command = f"cat > {shlex.quote(remote_path)} && chmod {mode} {shlex.quote(remote_path)}"
        channel = self.transport.open_session()
        try:
            channel.exec_command(command)
            channel.sendall(data)
            channel.shutdown_write()
            err = channel.makefile_stderr("rb").read().decode("utf-8", errors="replace")
            exit_status = channel.recv_exit_status()
        finally:
            channel.close()
        if exit_status != 0:
            raise OSError(f"Writing {remote_path} failed ({exit_status}): {err.strip()}")

    def open_session(self, *, window_size: int | None = None) -> paramiko.Channel:
        """Open a session channel for a long-running process."""
        return self.transport.open_session(window_size=window_size)

    @staticmethod
    def _prepare_command(
        command: str,
        *,
        cwd: str | None,
        env: dict[str, str] | None,
    ) -> str:
        """Prepare a shell command with optional env and working directory.

        This safely quotes environment variable values and the working
        directory. The command is not wrapped in a login shell: profile
        output would pollute the agent's binary channel.
        """
        env_prefix = ""
        if env:
            exports = "; ".join(
                f'export {k}={shlex.quote(v if v is not None else "")}'
                for k, v in env.items()
            )
            env_prefix = exports + "; "

        if cwd:
            command = f"cd {shlex.quote(cwd)} && {command}"

        return env_prefix + command
