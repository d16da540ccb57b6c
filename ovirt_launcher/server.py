"""MCP server bootstrap and global state.

Initializes the FastMCP server, configures Weave tracing when a project is
named, and lazily loads the configuration manager and hypervisor registry.
The global `mcp` object is imported by `main.py` and the tool module.
"""

import os
import threading

import weave
from mcp.server.fastmcp import FastMCP

from ovirt_launcher.config import ConfigManager
from ovirt_launcher.hypervisor import HypervisorRegistry
from ovirt_launcher.SSH.channel import connections

if os.getenv("WEAVE_PROJECT"):
    weave.init(os.environ["WEAVE_PROJECT"])

# Create the MCP server
mcp: FastMCP = FastMCP(
    "OVIRT_LAUNCHER", port=int(os.getenv("MCP_PORT", "3000")), stateless_http=True
)

_config_manager: ConfigManager | None = None
_registry: HypervisorRegistry | None = None
_state_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """Load the YAML config named by $CONFIG once; schema errors surface here."""
    global _config_manager
    with _state_lock:
        if _config_manager is None:
            _config_manager = ConfigManager(os.getenv("CONFIG", "config.yaml"))
        return _config_manager


def get_registry() -> HypervisorRegistry:
    """Return the process-wide hypervisor registry built from the config."""
    global _registry
    config_manager = get_config_manager()
    with _state_lock:
        if _registry is None:
            _registry = HypervisorRegistry(config_manager.all_hypervisor_creds())
        return _registry


def shutdown() -> None:
    """Close every live agent channel and the engine API sessions."""
    global _registry
    connections.close_all()
    with _state_lock:
        registry, _registry = _registry, None
    if registry is not None:
        registry.close()


# ruff: noqa: F401, E402
import ovirt_launcher.SSH.tools
