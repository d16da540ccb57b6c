"""Launcher interface and per-launch session state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ..hypervisor.types import SnapshotRef, VmHandle
from ..log_sink import LaunchLog
from ..waiting import CancelToken

if TYPE_CHECKING:
    from ..SSH.channel import AgentChannel


@dataclass
class Node:
    """Host-side view of the build node being launched.

    Attributes:
        name: Node name as known to the host.
        remote_fs: Working directory on the VM where the agent lives.
        on_channel: Called with the live channel once the agent is running;
            raising from it fails the attach step.
    """

    name: str
    remote_fs: str
    on_channel: Callable[["AgentChannel"], None] | None = None


class ComputerLauncher(ABC):
    """Something that can bring a node's agent up and hand back its channel."""

    #: True when `launch` needs an address discovered from the hypervisor.
    requires_address: bool = False
    address_retries: int = 5
    address_wait: float = 30

    @abstractmethod
    def launch(
        self,
        node: Node,
        log: LaunchLog,
        *,
        address: str | None = None,
        cancel: CancelToken | None = None,
    ) -> "AgentChannel":
        """Start the agent for `node` and return its communication channel."""

    def before_disconnect(self, node: Node, log: LaunchLog) -> None:
        """Called by the host before the node's channel is torn down."""

    def after_disconnect(self, node: Node, log: LaunchLog) -> None:
        """Called by the host after the node's channel is torn down."""


@dataclass
class LaunchSession:
    """State owned by a single `launch` invocation.

    The resolved snapshot is cached here and nowhere else, so every launch
    re-resolves it against the VM's current snapshot list.
    """

    vm: VmHandle
    log: LaunchLog
    snapshot_name: str = ""
    retries: int = 30
    wait_interval: float = 10
    unlock_timeout: float | None = None
    cancel: CancelToken = field(default_factory=CancelToken)
    snapshot: SnapshotRef | None = None

    @property
    def snapshot_specified(self) -> bool:
        return bool(self.snapshot_name.strip())
