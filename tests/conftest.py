"""Shared fakes and fixtures for the launcher tests.

`FakeHypervisorClient` models a single VM whose power state moves when
commands are issued: every status read consumes the next queued state, so a
test can script exactly how many polls a transition takes.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from ovirt_launcher.errors import HypervisorError, VmNotFound
from ovirt_launcher.hypervisor.types import (
    IpAddress,
    Nic,
    ReportedDevice,
    SnapshotRef,
    VmHandle,
    VmStatus,
)
from ovirt_launcher.launcher.base import ComputerLauncher, LaunchSession, Node
from ovirt_launcher.log_sink import LaunchLog
from ovirt_launcher.waiting import CancelToken


class RecordingToken(CancelToken):
    """CancelToken whose sleeps return immediately but are recorded."""

    def __init__(self) -> None:
        super().__init__()
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.check()
        self.sleeps.append(seconds)


class FakeHypervisorClient:
    def __init__(
        self,
        state: VmStatus = VmStatus.UP,
        snapshots: list[SnapshotRef] | None = None,
        nics: dict[Nic, list[ReportedDevice]] | None = None,
        lag: int = 1,
        lock_polls: int = 1,
        transitions: bool = True,
        vm_name: str = "ci-builder-01",
    ):
        self.vm = VmHandle(id="vm-1", name=vm_name, status=state)
        self.state = state
        self.snapshots = snapshots or []
        self.nics = nics or {}
        self.lag = lag
        self.lock_polls = lock_polls
        self.transitions = transitions
        self.pending: list[VmStatus] = []
        self.calls: list[tuple[Any, ...]] = []
        self.fail_preview = False
        self.fail_commit = False

    # lookup and state
    def get_vm(self, vm_name: str) -> VmHandle:
        self.calls.append(("get_vm", vm_name))
        if vm_name != self.vm.name:
            raise VmNotFound(f"No VM named '{vm_name}'")
        return replace(self.vm, status=self.state)

    def get_vm_status(self, vm: VmHandle) -> VmStatus:
        if self.pending:
            self.state = self.pending.pop(0)
        self.calls.append(("status", self.state))
        return self.state

    def _queue(self, intermediate: VmStatus, final: VmStatus, polls: int) -> None:
        if self.transitions:
            self.pending = [intermediate] * (polls - 1) + [final]

    # commands
    def start_vm(self, vm: VmHandle) -> None:
        self.calls.append(("start",))
        self._queue(VmStatus.POWERING_UP, VmStatus.UP, self.lag)

    def shutdown_vm(self, vm: VmHandle) -> None:
        self.calls.append(("shutdown",))
        self._queue(VmStatus.OTHER, VmStatus.DOWN, self.lag)

    def list_snapshots(self, vm: VmHandle) -> list[SnapshotRef]:
        self.calls.append(("list_snapshots",))
        return list(self.snapshots)

    def preview_snapshot(self, vm: VmHandle, snapshot: SnapshotRef, restore_memory: bool = False) -> None:
        self.calls.append(("preview", snapshot.description, restore_memory))
        if self.fail_preview:
            raise HypervisorError("preview rejected", status_code=409)

    def commit_snapshot(self, vm: VmHandle) -> None:
        self.calls.append(("commit",))
        if self.fail_commit:
            raise HypervisorError("commit rejected", status_code=500)
        self.pending = [VmStatus.IMAGE_LOCKED] * self.lock_polls + [VmStatus.DOWN]

    def list_nics(self, vm: VmHandle) -> list[Nic]:
        self.calls.append(("list_nics",))
        return list(self.nics)

    def list_reported_devices(self, vm: VmHandle, nic: Nic) -> list[ReportedDevice]:
        return list(self.nics[nic])

    def commands(self) -> list[str]:
        """Names of state-changing calls, in order."""
        return [
            c[0] for c in self.calls if c[0] in ("start", "shutdown", "preview", "commit")
        ]


class FakeRegistry:
    def __init__(self, client: FakeHypervisorClient):
        self.client = client

    def find(self, name: str) -> FakeHypervisorClient:
        return self.client


class FakeDelegate(ComputerLauncher):
    """Delegate launcher that records its calls and returns a mock channel."""

    def __init__(self, requires_address: bool = False, address_retries: int = 5, error: Exception | None = None):
        self.requires_address = requires_address
        self.address_retries = address_retries
        self.address_wait = 0
        self.error = error
        self.launches: list[dict[str, Any]] = []
        self.disconnects: list[str] = []
        self.channel = MagicMock(name="AgentChannel")

    def launch(self, node, log, *, address=None, cancel=None):
        self.launches.append({"node": node.name, "address": address})
        if self.error is not None:
            raise self.error
        return self.channel

    def before_disconnect(self, node, log):
        self.disconnects.append("before")

    def after_disconnect(self, node, log):
        self.disconnects.append("after")


def device(address: str | None, name: str = "eth0") -> ReportedDevice:
    ips = [IpAddress(address, "v4")] if address is not None else []
    return ReportedDevice(id=f"dev-{name}-{address}", name=name, ips=ips)


@pytest.fixture
def token() -> RecordingToken:
    return RecordingToken()


@pytest.fixture
def launch_log() -> LaunchLog:
    return LaunchLog(name="build-01")


@pytest.fixture
def node() -> Node:
    return Node(name="build-01", remote_fs="/home/jenkins/")


@pytest.fixture
def make_session(launch_log: LaunchLog, token: RecordingToken):
    def _make(client: FakeHypervisorClient, **kwargs: Any) -> LaunchSession:
        kwargs.setdefault("retries", 3)
        kwargs.setdefault("wait_interval", 5)
        return LaunchSession(vm=client.vm, log=launch_log, cancel=token, **kwargs)

    return _make


@pytest.fixture
def agent_file(tmp_path: Path) -> Path:
    path = tmp_path / "agent.jar"
    path.write_bytes(b"PK\x03\x04agent-bytes")
    return path
