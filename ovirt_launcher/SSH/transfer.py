"""Copy the agent binary onto the node.

SFTP is the primary method. When the remote side has no SFTP subsystem the
copy falls back to streaming the bytes through a shell command. The fallback
is only taken when the SFTP client cannot be started at all; an I/O error
from a working SFTP session is fatal.
"""

from __future__ import annotations

import posixpath
import shlex
import stat

import paramiko

from ..errors import TransferFailed, TransferServiceUnavailable
from ..log_sink import LaunchLog
from .remote_executor import RemoteExecutor


class AgentTransfer:
    def __init__(self, executor: RemoteExecutor, log: LaunchLog):
        self.executor = executor
        self.log = log

    def copy(self, data: bytes, working_directory: str, file_name: str) -> str:
        """Place `data` at `working_directory/file_name`.

        Returns:
            The method used: "sftp" or "shell".

        Raises:
            TransferFailed: If the copy fails for any reason other than a
                missing SFTP service.
        """
        self.log.info("Starting sftp client")
        try:
            sftp = self.open_sftp()
        except TransferServiceUnavailable as e:
            self.log.exception("Starting sftp client", e)
            self.copy_with_shell(data, working_directory, file_name)
            return "shell"

        try:
            self.copy_with_sftp(sftp, data, working_directory, file_name)
        except TransferFailed:
            raise
        except (OSError, paramiko.SSHException, EOFError) as e:
            raise TransferFailed(f"Error copying agent: {e}") from e
        finally:
            sftp.close()
        return "sftp"

    def open_sftp(self) -> paramiko.SFTPClient:
        """Start an SFTP client on the executor's transport.

        Raises:
            TransferServiceUnavailable: If the subsystem cannot be started.
        """
        try:
            sftp = paramiko.SFTPClient.from_transport(self.executor.transport)
        except (paramiko.SSHException, EOFError, OSError) as e:
            raise TransferServiceUnavailable(f"SFTP subsystem unavailable: {e}") from e
        if sftp is None:
            raise TransferServiceUnavailable("SFTP channel could not be opened")
        return sftp

    def copy_with_sftp(
        self,
        sftp: paramiko.SFTPClient,
        data: bytes,
        working_directory: str,
        file_name: str,
    ) -> None:
        remote_path = f"{working_directory}/{file_name}"
        try:
            attrs = sftp.stat(working_directory)
        except FileNotFoundError:
            self.log.info("Remote FS doesn't exist")
            _mkdirs(sftp, working_directory, 0o700)
        else:
            if attrs.st_mode is not None and stat.S_ISREG(attrs.st_mode):
                raise TransferFailed("Remote FS is a file")

        # remove first so no bytes of an older, longer agent remain
        try:
            sftp.remove(remote_path)
        except FileNotFoundError:
            pass

        self.log.info("Copying agent")
        with sftp.open(remote_path, "wb") as f:
            f.write(data)
        self.log.info(f"Copied {len(data)} bytes")

    def copy_with_shell(self, data: bytes, working_directory: str, file_name: str) -> None:
        rx = self.executor
        wd = shlex.quote(working_directory)
        try:
            _, _, rc = rx.run(f"test -d {wd}")
            if rc != 0:
                self.log.info("Remote filesystem doesn't exist")
                _, err, rc = rx.run(f"mkdir -p {wd}")
                if rc != 0:
                    msg = f"Failed to create {working_directory}: {err.strip()}"
                    self.log.error(msg)
                    raise TransferFailed(msg)

            rx.run(f"rm -f {shlex.quote(working_directory + '/' + file_name)}")

            self.log.info("Copying agent")
            rx.put_file(data, working_directory, file_name, mode="0644")
        except (OSError, paramiko.SSHException, EOFError) as e:
            raise TransferFailed(f"Error copying agent: {e}") from e
        self.log.info(f"Copied {len(data)} bytes")


def _mkdirs(sftp: paramiko.SFTPClient, path: str, mode: int) -> None:
    """Create `path` and any missing parents."""
    current = "/" if path.startswith("/") else ""
    for part in [p for p in path.split("/") if p]:
        current = posixpath.join(current, part) if current else part
        try:
            sftp.stat(current)
        except FileNotFoundError:
            sftp.mkdir(current, mode)
