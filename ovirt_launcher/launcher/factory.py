"""Build launchers from configured nodes."""

from __future__ import annotations

from typing import Callable

from ..config.credentials import NodeConfig
from ..hypervisor.registry import HypervisorRegistry
from ..SSH.bootstrap import SshBootstrapLauncher
from ..SSH.channel import AgentChannel
from .base import Node
from .orchestrator import VMLauncher


def build_launcher(config: NodeConfig, registry: HypervisorRegistry) -> VMLauncher:
    """Compose the VM stage with the SSH bootstrap for one node."""
    return VMLauncher(
        delegate=SshBootstrapLauncher(config.launcher),
        hypervisor=config.hypervisor,
        vm_name=config.vm,
        registry=registry,
        snapshot_name=config.snapshot,
        wait_seconds=config.wait_seconds,
        retries=config.retries,
        unlock_timeout=config.unlock_timeout,
    )


def build_node(
    config: NodeConfig,
    on_channel: Callable[[AgentChannel], None] | None = None,
) -> Node:
    return Node(name=config.name, remote_fs=config.remote_fs, on_channel=on_channel)
