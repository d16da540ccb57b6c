"""MCP tools that expose node launches.

This module registers MCP tools for inspecting the configured hypervisors and
for launching and disconnecting build nodes. Return values are typed for
predictability; failures raise ValueError with a readable message, except for
launches, which report failure in the result together with the build log.

Tools that talk to the engine or to a node run their blocking work in a
worker thread via `asyncio.to_thread`, so one long launch does not stall the
server's event loop.

Tools provided:
- `ovirt_list_nodes()`: Configured node names.
- `ovirt_list_vms(hypervisor)`: VM names visible on a hypervisor.
- `ovirt_vm_status(node)`: Current power state of a node's VM.
- `ovirt_test_connection(hypervisor)`: Check the engine credentials.
- `ovirt_launch_node(node)`: Run the full launch pipeline.
- `ovirt_disconnect_node(node)`: Tear down a launched node's channel.
- `ovirt_is_node_reachable(node)`: Quick SSH port probe.
"""

# ruff: noqa: I001
import asyncio
import logging
import threading

import weave

from ovirt_launcher.errors import LaunchError, LaunchFailed
from ovirt_launcher.launcher.factory import build_launcher, build_node
from ovirt_launcher.launcher.orchestrator import VMLauncher
from ovirt_launcher.log_sink import LaunchLog
from ovirt_launcher.server import get_config_manager, get_registry, mcp

from .channel import connections
from .utils.network import tcp_reachable
from .utils.types import (
    ConnectionCheckResult,
    DisconnectResult,
    LaunchResult,
    ListNodesResult,
    ListVMsResult,
    NodeReachableResult,
    VMStatusResult,
)

logger = logging.getLogger(__name__)

# Launchers of nodes that are currently attached, by node name.
_launchers: dict[str, VMLauncher] = {}
_launchers_lock = threading.Lock()


# -----------------------
# Blocking helpers (run in worker threads)
# -----------------------


def _list_vms(hypervisor: str) -> ListVMsResult:
    try:
        client = get_registry().find(hypervisor)
        return {"hypervisor": hypervisor, "vms": client.vm_names()}
    except LaunchError as e:
        raise ValueError(str(e))


def _vm_status(node: str) -> VMStatusResult:
    cfg = get_config_manager().get_node(node)
    try:
        client = get_registry().find(cfg.hypervisor)
        vm = client.get_vm(cfg.vm)
    except LaunchError as e:
        raise ValueError(str(e))
    return {
        "node": node,
        "vm": vm.name,
        "status": vm.status.value,
        "raw_status": vm.raw_status,
    }


def _test_connection(hypervisor: str) -> ConnectionCheckResult:
    try:
        count = get_registry().find(hypervisor).test_connection()
    except LaunchError as e:
        return {"hypervisor": hypervisor, "ok": False, "vm_count": None, "reason": str(e)}
    return {"hypervisor": hypervisor, "ok": True, "vm_count": count, "reason": None}


def _launch(node: str) -> LaunchResult:
    cfg = get_config_manager().get_node(node)
    launcher = build_launcher(cfg, get_registry())
    log = LaunchLog(name=node)
    try:
        channel = launcher.launch(build_node(cfg), log)
    except LaunchFailed as e:
        logger.warning("Launch of %s failed at stage %s", node, e.stage)
        return {
            "node": node,
            "status": "failed",
            "host": None,
            "stage": e.stage,
            "error": str(e),
            "log": log.getvalue(),
        }
    with _launchers_lock:
        _launchers[node] = launcher
    return {
        "node": node,
        "status": "attached",
        "host": channel.executor.hostname,
        "stage": None,
        "error": None,
        "log": log.getvalue(),
    }


def _disconnect(node: str) -> DisconnectResult:
    with _launchers_lock:
        launcher = _launchers.pop(node, None)
    if launcher is None:
        return {"node": node, "closed": connections.close(node)}
    log = LaunchLog(name=node)
    target = build_node(get_config_manager().get_node(node))
    launcher.before_disconnect(target, log)
    launcher.after_disconnect(target, log)
    return {"node": node, "closed": True}


def _node_reachable(node: str) -> NodeReachableResult:
    cfg = get_config_manager().get_node(node)
    host = cfg.launcher.host
    if not host:
        channel = connections.get(node)
        host = channel.executor.hostname if channel is not None else None
    if not host:
        raise ValueError(f"Address of node '{node}' is unknown; launch it first")
    reachable, latency_ms, reason = tcp_reachable(host, cfg.launcher.port)
    return {
        "node": node,
        "host": host,
        "port": cfg.launcher.port,
        "reachable": reachable,
        "latency_ms": latency_ms,
        "reason": reason,
    }


# -----------------------
# Tools
# -----------------------


@mcp.tool(
    name="ovirt_list_nodes",
    description=(
        "List the build nodes defined in the YAML configuration.\n\n"
        "Returns: { nodes: string[] }."
    ),
)
@weave.op()
def ovirt_list_nodes() -> ListNodesResult:
    return {"nodes": get_config_manager().list_nodes()}


@mcp.tool(
    name="ovirt_list_vms",
    description=(
        "List VM names on a configured oVirt hypervisor, scoped to its cluster when one is configured.\n\n"
        "Parameters:\n"
        "- hypervisor (string): Hypervisor name from the YAML configuration.\n"
        "Returns: { hypervisor: string, vms: string[] }.\n\n"
        "Errors: Raises ValueError for unknown hypervisors or API failures."
    ),
)
@weave.op()
async def ovirt_list_vms(hypervisor: str) -> ListVMsResult:
    """Return the VM names visible on `hypervisor`."""
    return await asyncio.to_thread(_list_vms, hypervisor)


@mcp.tool(
    name="ovirt_vm_status",
    description=(
        "Read the current power state of the VM bound to a node.\n\n"
        "Parameters:\n"
        "- node (string): Node name from the YAML configuration.\n"
        "Returns: { node, vm, status: 'down'|'up'|'powering_up'|'image_locked'|'other', raw_status }.\n\n"
        "Errors: Raises ValueError for unknown nodes, missing VMs or API failures."
    ),
)
@weave.op()
async def ovirt_vm_status(node: str) -> VMStatusResult:
    return await asyncio.to_thread(_vm_status, node)


@mcp.tool(
    name="ovirt_test_connection",
    description=(
        "Check that a hypervisor's URL and credentials work by listing its VMs.\n\n"
        "Parameters:\n"
        "- hypervisor (string): Hypervisor name from the YAML configuration.\n"
        "Returns: { hypervisor, ok, vm_count, reason }."
    ),
)
@weave.op()
async def ovirt_test_connection(hypervisor: str) -> ConnectionCheckResult:
    return await asyncio.to_thread(_test_connection, hypervisor)


@mcp.tool(
    name="ovirt_launch_node",
    description=(
        "Launch a build node: power-cycle and revert its VM to the configured snapshot if any, power it up, "
        "discover its address, copy the agent over SSH and start it.\n\n"
        "Parameters:\n"
        "- node (string): Node name from the YAML configuration.\n"
        "Returns: { node, status: 'attached'|'failed', host, stage, error, log }. 'log' is the full build log.\n\n"
        "Important: This call blocks until the agent is attached or the launch fails; it can take minutes."
    ),
)
@weave.op()
async def ovirt_launch_node(node: str) -> LaunchResult:
    """Run the launch pipeline for `node` and keep its channel open."""
    return await asyncio.to_thread(_launch, node)


@mcp.tool(
    name="ovirt_disconnect_node",
    description=(
        "Disconnect a launched node and close its SSH connection.\n\n"
        "Parameters:\n"
        "- node (string): Node name.\n"
        "Returns: { node, closed }. 'closed' is false when nothing was connected."
    ),
)
@weave.op()
async def ovirt_disconnect_node(node: str) -> DisconnectResult:
    return await asyncio.to_thread(_disconnect, node)


@mcp.tool(
    name="ovirt_is_node_reachable",
    description=(
        "Check if a node's SSH port is reachable (TCP connect + SSH banner) and measure approximate latency.\n\n"
        "Parameters:\n"
        "- node (string): Node name. Its address must be static in the config or known from a launch.\n"
        "Returns: { node, host, port, reachable, latency_ms, reason }.\n\n"
        "Errors: Raises ValueError when the node's address is unknown."
    ),
)
@weave.op()
async def ovirt_is_node_reachable(node: str) -> NodeReachableResult:
    return await asyncio.to_thread(_node_reachable, node)
