"""oVirt engine access: REST client, typed views and the hypervisor registry."""

from .client import HypervisorClient
from .registry import HypervisorRegistry
from .types import IpAddress, Nic, ReportedDevice, SnapshotRef, VmHandle, VmStatus

__all__ = [
    "HypervisorClient",
    "HypervisorRegistry",
    "IpAddress",
    "Nic",
    "ReportedDevice",
    "SnapshotRef",
    "VmHandle",
    "VmStatus",
]
