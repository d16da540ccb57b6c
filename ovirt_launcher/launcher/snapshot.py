"""Revert a VM to a named snapshot with a preview + commit pair."""

from __future__ import annotations

from ..errors import (
    HypervisorError,
    SnapshotCommitFailed,
    SnapshotNotFound,
    SnapshotPreviewFailed,
)
from ..hypervisor.client import HypervisorClient
from ..hypervisor.types import SnapshotRef, VmHandle
from .base import LaunchSession
from .power import PowerStateController


class SnapshotRevertManager:
    """Snapshot stage of a launch.

    The caller must have brought the VM down before calling `revert`; this
    is not re-checked here.
    """

    def __init__(
        self,
        client: HypervisorClient,
        session: LaunchSession,
        power: PowerStateController,
    ):
        self.client = client
        self.session = session
        self.power = power

    def resolve(self, vm: VmHandle, snapshot_name: str) -> SnapshotRef:
        """Find the snapshot whose description equals `snapshot_name`.

        The result is cached on the session for the rest of this launch.

        Raises:
            SnapshotNotFound: If no snapshot on the VM has that description.
        """
        cached = self.session.snapshot
        if cached is not None and cached.description == snapshot_name:
            return cached
        for snap in self.client.list_snapshots(vm):
            if snap.description == snapshot_name:
                self.session.snapshot = snap
                return snap
        raise SnapshotNotFound(f"No snapshot '{snapshot_name}' for vm '{vm.name}' found")

    def revert(self, vm: VmHandle, snapshot_name: str) -> None:
        """Preview `snapshot_name` without memory state, then commit it.

        Raises:
            SnapshotNotFound: Unknown description.
            SnapshotPreviewFailed: The engine rejected the preview.
            SnapshotCommitFailed: Preview applied but commit failed; the VM is
                left previewed and needs an operator.
        """
        if not snapshot_name.strip():
            return
        snapshot = self.resolve(vm, snapshot_name)

        # a lock from an earlier operation may still be draining
        self.power.wait_until_unlocked(vm)

        try:
            self.client.preview_snapshot(vm, snapshot, restore_memory=False)
        except HypervisorError as e:
            raise SnapshotPreviewFailed(
                f"Preview of snapshot '{snapshot.description}' on '{vm.name}' failed: {e}"
            ) from e

        try:
            self.client.commit_snapshot(vm)
        except HypervisorError as e:
            self.session.log.error(
                f"'{vm.name}' is left previewing snapshot '{snapshot.description}'; "
                "commit or undo the preview manually"
            )
            raise SnapshotCommitFailed(
                f"Commit of snapshot '{snapshot.description}' on '{vm.name}' failed: {e}"
            ) from e

        self.session.log.info(f"Reverted '{vm.name}' to snapshot '{snapshot.description}'")
