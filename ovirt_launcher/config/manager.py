"""Configuration loader for hypervisors and build nodes.

Reads a YAML file describing oVirt engines and the nodes bound to VMs on
them, validates it, and exposes typed credentials and node settings.
"""

import os
from pathlib import Path
from typing import Any, Union

import yaml

from .credentials import HypervisorCredentials, NodeConfig, SshLauncherConfig
from .schema import validate_config_schema


def _resolve_password(entry: dict[str, Any], where: str) -> str:
    """Return the literal password, or read it from the named env variable."""
    if entry.get("password") is not None:
        return str(entry["password"])
    env_name = entry.get("password_env")
    value = os.getenv(env_name) if env_name else None
    if value is None:
        raise ValueError(f"{where}: environment variable '{env_name}' is not set")
    return value


class ConfigManager:
    """Manage access to the launcher configuration defined in a YAML file.

    The YAML file is expected to contain a top-level "hypervisors" list and
    an optional "nodes" list. See `validate_config_schema` for the fields.

    Args:
        config_path: Path to the YAML configuration file.
    """

    def __init__(self, config_path: Union[str, Path]):
        self.config_path = Path(config_path)
        self.raw = self._load_config()
        self._hypervisors = {hv["name"]: hv for hv in self.raw["hypervisors"]}
        self._nodes = {node["name"]: node for node in self.raw.get("nodes") or []}

    def _load_config(self) -> dict[str, Any]:
        """Load and validate the YAML configuration file.

        Raises:
            SchemaError: If the structure is invalid.
        """
        with open(self.config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        validate_config_schema(data)
        return data

    def list_hypervisors(self) -> list[str]:
        """Return the hypervisor names available in the configuration."""
        return list(self._hypervisors.keys())

    def list_nodes(self) -> list[str]:
        """Return the node names available in the configuration."""
        return list(self._nodes.keys())

    def get_hypervisor_creds(self, name: str) -> HypervisorCredentials:
        """Return credentials for the named hypervisor.

        Raises:
            ValueError: If the hypervisor is unknown or its password env is unset.
        """
        if name not in self._hypervisors:
            raise ValueError(f"Hypervisor '{name}' not found")
        hv = self._hypervisors[name]
        return HypervisorCredentials(
            name=name,
            url=str(hv["url"]).strip(),
            username=str(hv["username"]).strip(),
            password=_resolve_password(hv, f"hypervisor '{name}'"),
            cluster=str(hv.get("cluster") or "").strip(),
            insecure=bool(hv.get("insecure", False)),
            timeout=float(hv.get("timeout", 30)),
        )

    def all_hypervisor_creds(self) -> list[HypervisorCredentials]:
        return [self.get_hypervisor_creds(name) for name in self.list_hypervisors()]

    def get_node(self, name: str) -> NodeConfig:
        """Return the settings for the named node.

        Raises:
            ValueError: If the node is unknown or a password env is unset.
        """
        if name not in self._nodes:
            raise ValueError(f"Node '{name}' not found")
        node = self._nodes[name]
        launcher = node["launcher"]
        defaults = SshLauncherConfig("", "", "")
        ssh = SshLauncherConfig(
            username=str(launcher["username"]),
            password=_resolve_password(launcher, f"node '{name}' launcher"),
            agent_path=str(launcher["agent_path"]),
            host=launcher.get("host"),
            port=int(launcher.get("port", defaults.port)),
            agent_name=str(launcher.get("agent_name", defaults.agent_name)),
            agent_command=str(launcher.get("agent_command", defaults.agent_command)),
            max_retries=int(launcher.get("max_retries", defaults.max_retries)),
            retry_wait=int(launcher.get("retry_wait", defaults.retry_wait)),
            address_retries=int(launcher.get("address_retries", defaults.address_retries)),
            address_wait=int(launcher.get("address_wait", defaults.address_wait)),
            launch_timeout=int(launcher.get("launch_timeout", defaults.launch_timeout)),
        )
        unlock_timeout = node.get("unlock_timeout")
        return NodeConfig(
            name=name,
            hypervisor=node["hypervisor"],
            vm=node["vm"],
            remote_fs=str(node["remote_fs"]),
            launcher=ssh,
            snapshot=str(node.get("snapshot") or ""),
            wait_seconds=int(node.get("wait_seconds", 10)),
            retries=int(node.get("retries", 30)),
            unlock_timeout=int(unlock_timeout) if unlock_timeout is not None else None,
        )
