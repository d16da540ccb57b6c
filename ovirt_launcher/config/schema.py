"""Schema validation for the launcher YAML configuration.

The file has two top-level lists:
- hypervisors: oVirt engines (name, url, username, password or password_env)
- nodes: build nodes, each bound to a VM on one of the hypervisors

Validation happens once at load time so that configuration mistakes surface
before any launch touches a VM.
"""

from __future__ import annotations

from typing import Any, Iterable

LAUNCHER_TYPES = ("ssh",)

_NODE_INT_FIELDS = ("wait_seconds", "retries", "unlock_timeout")
_LAUNCHER_INT_FIELDS = (
    "port",
    "max_retries",
    "retry_wait",
    "address_retries",
    "address_wait",
    "launch_timeout",
)


class SchemaError(ValueError):
    """Raised when the YAML configuration structure is invalid."""


def _require_keys(obj: dict[str, Any], keys: Iterable[str], where: str) -> None:
    for req in keys:
        if req not in obj:
            raise SchemaError(f"{where} is missing required field '{req}'")


def _require_password(obj: dict[str, Any], where: str) -> None:
    if "password" not in obj and "password_env" not in obj:
        raise SchemaError(f"{where} needs either 'password' or 'password_env'")


def _check_non_negative_ints(obj: dict[str, Any], fields: Iterable[str], where: str) -> None:
    for name in fields:
        if name not in obj or obj[name] is None:
            continue
        value = obj[name]
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise SchemaError(f"{where}.{name} must be a non-negative integer")


def _unique_names(items: list[Any], section: str) -> set[str]:
    names: set[str] = set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise SchemaError(f"{section}[{i}] must be a mapping/object")
        _require_keys(item, ("name",), f"{section}[{i}]")
        name = str(item["name"]).strip()
        if not name:
            raise SchemaError(f"{section}[{i}].name cannot be empty")
        if name in names:
            raise SchemaError(f"Duplicate {section[:-1]} name '{name}'")
        names.add(name)
    return names


def validate_config_schema(data: dict[str, Any]) -> None:
    """Validate the high-level config schema.

    Checks:
    - hypervisors: non-empty list of objects with name, url, username and a
      password source; names unique
    - nodes: list of objects with name, hypervisor, vm, remote_fs and a
      launcher; hypervisor must reference a configured hypervisor
    - integer tunables are non-negative ints

    Raises:
        SchemaError: on structural issues; the message names the offending entry.
    """
    if not isinstance(data, dict):
        raise SchemaError("Top-level YAML must be a mapping/object")

    hypervisors = data.get("hypervisors")
    if not isinstance(hypervisors, list) or not hypervisors:
        raise SchemaError("'hypervisors' must be a non-empty list")
    hv_names = _unique_names(hypervisors, "hypervisors")
    for i, hv in enumerate(hypervisors):
        where = f"hypervisors[{i}]"
        _require_keys(hv, ("url", "username"), where)
        _require_password(hv, where)
        if "insecure" in hv and not isinstance(hv["insecure"], bool):
            raise SchemaError(f"{where}.insecure must be a boolean if provided")

    nodes = data.get("nodes", [])
    if not isinstance(nodes, list):
        raise SchemaError("'nodes' must be a list if provided")
    _unique_names(nodes, "nodes")
    for i, node in enumerate(nodes):
        where = f"nodes[{i}]"
        _require_keys(node, ("hypervisor", "vm", "remote_fs", "launcher"), where)
        if node["hypervisor"] not in hv_names:
            raise SchemaError(f"{where} references unknown hypervisor '{node['hypervisor']}'")
        if "snapshot" in node and node["snapshot"] is not None and not isinstance(node["snapshot"], str):
            raise SchemaError(f"{where}.snapshot must be a string if provided")
        _check_non_negative_ints(node, _NODE_INT_FIELDS, where)

        launcher = node["launcher"]
        lwhere = f"{where}.launcher"
        if not isinstance(launcher, dict):
            raise SchemaError(f"{lwhere} must be a mapping/object")
        ltype = launcher.get("type", "ssh")
        if ltype not in LAUNCHER_TYPES:
            raise SchemaError(f"{lwhere}.type '{ltype}' is not one of {', '.join(LAUNCHER_TYPES)}")
        _require_keys(launcher, ("username", "agent_path"), lwhere)
        _require_password(launcher, lwhere)
        _check_non_negative_ints(launcher, _LAUNCHER_INT_FIELDS, lwhere)
