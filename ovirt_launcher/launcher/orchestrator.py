"""Top-level launch sequence for a hypervisor-managed build node."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ..errors import LaunchFailed
from ..hypervisor.registry import HypervisorRegistry
from ..log_sink import LaunchLog
from ..SSH.channel import ConnectionRegistry, connections
from ..waiting import CancelToken
from .address import AddressDiscovery
from .base import ComputerLauncher, LaunchSession, Node
from .power import PowerStateController
from .snapshot import SnapshotRevertManager

if TYPE_CHECKING:
    from ..SSH.channel import AgentChannel

logger = logging.getLogger(__name__)


class VMLauncher(ComputerLauncher):
    """Bring a VM to a launchable state, then hand off to `delegate`.

    Sequence per launch:
      1. look the VM up by name on the hypervisor
      2. if a snapshot is configured: shut down, revert, wait for unlock
      3. power up
      4. discover an address if the delegate needs one, then delegate

    Any failure is logged and raised as `LaunchFailed`; the pipeline is never
    retried as a whole.

    Args:
        delegate: Launcher that starts the agent once the VM is up.
        hypervisor: Name of the configured hypervisor.
        vm_name: VM name on that hypervisor.
        registry: Hypervisor lookup.
        snapshot_name: Snapshot description to revert to; empty to skip.
        wait_seconds: Interval between power-state polls.
        retries: Number of polls per power transition.
        unlock_timeout: Optional cap on the image-lock wait, in seconds.
        connection_registry: Where live channels are registered.
    """

    def __init__(
        self,
        delegate: ComputerLauncher,
        hypervisor: str,
        vm_name: str,
        registry: HypervisorRegistry,
        snapshot_name: str = "",
        wait_seconds: float = 10,
        retries: int = 30,
        unlock_timeout: float | None = None,
        connection_registry: ConnectionRegistry = connections,
    ):
        self.delegate = delegate
        self.hypervisor = hypervisor
        self.vm_name = vm_name
        self.registry = registry
        self.snapshot_name = snapshot_name or ""
        self.wait_seconds = wait_seconds
        self.retries = retries
        self.unlock_timeout = unlock_timeout
        self.connections = connection_registry
        self._lock = threading.Lock()

    def launch(
        self,
        node: Node,
        log: LaunchLog,
        *,
        address: str | None = None,
        cancel: CancelToken | None = None,
    ) -> "AgentChannel":
        cancel = cancel or CancelToken()
        log.info("Connecting to ovirt server...")
        try:
            client = self.registry.find(self.hypervisor)
            vm = client.get_vm(self.vm_name)
            session = LaunchSession(
                vm=vm,
                log=log,
                snapshot_name=self.snapshot_name,
                retries=self.retries,
                wait_interval=self.wait_seconds,
                unlock_timeout=self.unlock_timeout,
                cancel=cancel,
            )
            power = PowerStateController(client, session)

            if session.snapshot_specified:
                power.ensure_down(vm)
                SnapshotRevertManager(client, session, power).revert(vm, session.snapshot_name)
                power.wait_until_unlocked(vm)
            power.ensure_up(vm)

            if address is None and self.delegate.requires_address:
                address = AddressDiscovery(
                    client,
                    log,
                    cancel,
                    retries=self.delegate.address_retries,
                    wait=self.delegate.address_wait,
                ).discover(vm)

            channel = self.delegate.launch(node, log, address=address, cancel=cancel)
        except Exception as e:
            log.exception(f"Launch of '{node.name}' failed", e)
            raise LaunchFailed(f"Launch of '{node.name}' failed: {e}", cause=e) from e

        self.connections.register(node.name, channel)
        return channel

    def before_disconnect(self, node: Node, log: LaunchLog) -> None:
        with self._lock:
            self.delegate.before_disconnect(node, log)

    def after_disconnect(self, node: Node, log: LaunchLog) -> None:
        with self._lock:
            self.delegate.after_disconnect(node, log)
            if self.connections.close(node.name):
                logger.info("Closed registered connection for %s", node.name)
