"""Bootstrap a build agent over SSH.

One launch walks these states, logging each transition:

    CONNECTING -> AUTHENTICATING -> VERIFYING_CHANNEL -> TRANSFERRING_AGENT
        -> STARTING_AGENT -> ATTACHED

Any failure moves to FAILED; the transport is closed before the error
propagates. The whole sequence runs on a dedicated worker thread bounded by
`launch_timeout`. When that elapses the launch fails straight away and the
worker is left to unwind on its own; it may run briefly after the failure is
reported. Each launch records its progress on its own `BootstrapRun`, so a
left-over worker never touches the launcher's view of a later launch.
"""

from __future__ import annotations

import shlex
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

import paramiko

from ..config.credentials import SshLauncherConfig
from ..errors import (
    AgentStartFailed,
    AttachFailed,
    AuthenticationFailed,
    BootstrapTimeout,
    ChannelVerificationFailed,
    ConfigurationError,
    LaunchError,
    LaunchInterrupted,
    TransferFailed,
    TransportConnectFailed,
)
from ..launcher.base import ComputerLauncher, Node
from ..log_sink import LaunchLog
from ..waiting import CancelToken
from .channel import AgentChannel, StderrPump
from .remote_executor import RemoteExecutor
from .transfer import AgentTransfer
from .utils.masking import redact

# Window for the agent session, which carries all host/agent traffic.
AGENT_WINDOW_SIZE = 4 * 1024 * 1024


class BootstrapState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    VERIFYING_CHANNEL = "verifying_channel"
    TRANSFERRING_AGENT = "transferring_agent"
    STARTING_AGENT = "starting_agent"
    ATTACHED = "attached"
    FAILED = "failed"


@dataclass
class BootstrapRun:
    """Progress of one launch, owned by that launch's worker thread."""

    state: BootstrapState | None = None


_STAGE_ERRORS: dict[BootstrapState | None, type[LaunchError]] = {
    BootstrapState.CONNECTING: TransportConnectFailed,
    BootstrapState.AUTHENTICATING: AuthenticationFailed,
    BootstrapState.VERIFYING_CHANNEL: ChannelVerificationFailed,
    BootstrapState.TRANSFERRING_AGENT: TransferFailed,
    BootstrapState.STARTING_AGENT: AgentStartFailed,
}

ExecutorFactory = Callable[..., RemoteExecutor]


def working_directory(remote_fs: str) -> str:
    """Strip trailing slashes from the node's declared remote FS."""
    wd = remote_fs
    while wd.endswith("/"):
        wd = wd[:-1]
    return wd


class SshBootstrapLauncher(ComputerLauncher):
    """Copy the agent over SSH, start it and attach to its stdio.

    Args:
        config: SSH credentials, agent location and retry budget.
        executor_factory: Builds the `RemoteExecutor`; replaceable in tests.
    """

    def __init__(
        self,
        config: SshLauncherConfig,
        executor_factory: ExecutorFactory = RemoteExecutor,
    ):
        self.config = config
        self.executor_factory = executor_factory
        self.requires_address = not config.host
        self.address_retries = config.address_retries
        self.address_wait = config.address_wait
        self.state: BootstrapState | None = None
        self.channel: AgentChannel | None = None

    def launch(
        self,
        node: Node,
        log: LaunchLog,
        *,
        address: str | None = None,
        cancel: CancelToken | None = None,
    ) -> AgentChannel:
        host = self.config.host or address
        if not host:
            raise ConfigurationError(f"No address known for node '{node.name}'")
        cancel = cancel or CancelToken()

        executor = self.executor_factory(
            host,
            self.config.username,
            port=self.config.port,
            password=self.config.password,
            max_retries=self.config.max_retries,
            retry_wait=self.config.retry_wait,
            cancel=cancel,
            log=log,
        )

        pool = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"SSHLauncher.launch for '{node.name}' node"
        )
        try:
            future = pool.submit(self._bootstrap, BootstrapRun(), node, log, executor, cancel)
            try:
                channel = future.result(timeout=self.config.launch_timeout or None)
            except FutureTimeout:
                cancel.cancel()
                self.state = BootstrapState.FAILED
                log.error(
                    f"Launch timed out after {self.config.launch_timeout}s - cleaning up connection"
                )
                self._cleanup(executor, log)
                raise BootstrapTimeout(
                    f"Agent bootstrap on '{host}' did not finish within "
                    f"{self.config.launch_timeout}s"
                ) from None
            except BaseException:
                self.state = BootstrapState.FAILED
                log.info(" Launch failed - cleaning up connection")
                self._cleanup(executor, log)
                raise
        finally:
            pool.shutdown(wait=False)

        self.state = BootstrapState.ATTACHED
        self.channel = channel
        return channel

    def _enter(
        self, run: BootstrapRun, state: BootstrapState, log: LaunchLog, cancel: CancelToken
    ) -> None:
        cancel.check()
        run.state = state
        log.info(f"[{state.value}]")

    def _bootstrap(
        self,
        run: BootstrapRun,
        node: Node,
        log: LaunchLog,
        executor: RemoteExecutor,
        cancel: CancelToken,
    ) -> AgentChannel:
        try:
            self._enter(run, BootstrapState.CONNECTING, log, cancel)
            executor.connect()

            self._enter(run, BootstrapState.AUTHENTICATING, log, cancel)
            executor.authenticate()

            self._enter(run, BootstrapState.VERIFYING_CHANNEL, log, cancel)
            self._verify_no_header_junk(executor, log)
            self._report_environment(executor, log)

            wd = working_directory(node.remote_fs)
            if not wd:
                raise TransferFailed(f"Cannot get the working directory for {node.name}")

            self._enter(run, BootstrapState.TRANSFERRING_AGENT, log, cancel)
            AgentTransfer(executor, log).copy(self._load_agent(), wd, self.config.agent_name)

            self._enter(run, BootstrapState.STARTING_AGENT, log, cancel)
            channel = self._start_agent(node, log, executor, wd, cancel)

            run.state = BootstrapState.ATTACHED
            log.info(f"Agent attached on {executor.hostname}")
            return channel
        except LaunchError as e:
            self._fail(run, log, e)
            raise
        except (paramiko.SSHException, OSError, EOFError) as e:
            error_cls = _STAGE_ERRORS.get(run.state, AgentStartFailed)
            stage = run.state.value if run.state else "startup"
            wrapped = error_cls(f"SSH failure while {stage}: {e}")
            self._fail(run, log, wrapped)
            raise wrapped from e

    def _fail(self, run: BootstrapRun, log: LaunchLog, error: LaunchError) -> None:
        failed_in = run.state.value if run.state else "startup"
        run.state = BootstrapState.FAILED
        log.exception(f"Bootstrap failed while {failed_in}", error)

    def _verify_no_header_junk(self, executor: RemoteExecutor, log: LaunchLog) -> None:
        """Make sure the shell prints nothing on its own.

        Any profile output would corrupt the agent's binary protocol.
        """
        out, _, _ = executor.run("true")
        if out:
            log.error("SSH header junk detected")
            log.info(out)
            raise ChannelVerificationFailed(
                f"Remote shell on {executor.hostname} produced unexpected output"
            )

    def _report_environment(self, executor: RemoteExecutor, log: LaunchLog) -> None:
        out, _, _ = executor.run("set")
        log.info("Environment:")
        log.info(redact(out.rstrip(), [self.config.password]))

    def _load_agent(self) -> bytes:
        try:
            return Path(self.config.agent_path).read_bytes()
        except OSError as e:
            raise TransferFailed(f"Cannot read agent binary {self.config.agent_path}: {e}") from e

    def _start_agent(
        self,
        node: Node,
        log: LaunchLog,
        executor: RemoteExecutor,
        wd: str,
        cancel: CancelToken,
    ) -> AgentChannel:
        cmd = f"cd {shlex.quote(wd)} && {self.config.agent_command}"
        try:
            session = executor.open_session(window_size=AGENT_WINDOW_SIZE)
            log.info(f"Expanded the channel window size to {AGENT_WINDOW_SIZE // (1024 * 1024)}MB")
            log.info(f"Starting agent process {cmd}")
            session.exec_command(cmd)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise AgentStartFailed(f"Could not start agent on {executor.hostname}: {e}") from e

        channel = AgentChannel(executor, session)
        StderrPump(channel, log).start()

        try:
            cancel.check()
            if node.on_channel is not None:
                node.on_channel(channel)
        except LaunchInterrupted as e:
            session.close()
            raise AttachFailed("Aborted during connection open") from e
        except Exception as e:
            # an error this early usually means the agent died; report how
            raise AttachFailed(channel.outcome_message()) from e
        return channel

    def _cleanup(self, executor: RemoteExecutor, log: LaunchLog) -> None:
        executor.close()
        log.info("Connection closed")

    def before_disconnect(self, node: Node, log: LaunchLog) -> None:
        log.info(f"Disconnecting {node.name}")

    def after_disconnect(self, node: Node, log: LaunchLog) -> None:
        if self.channel is not None:
            self.channel.close()
            self.channel = None
            log.info("Connection closed")
