"""Launch pipeline: power control, snapshot revert, address discovery, orchestration."""

from .address import AddressDiscovery
from .base import ComputerLauncher, LaunchSession, Node
from .orchestrator import VMLauncher
from .power import PowerStateController
from .snapshot import SnapshotRevertManager

__all__ = [
    "AddressDiscovery",
    "ComputerLauncher",
    "LaunchSession",
    "Node",
    "PowerStateController",
    "SnapshotRevertManager",
    "VMLauncher",
]
