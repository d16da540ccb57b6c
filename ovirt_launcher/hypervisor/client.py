"""oVirt engine REST client.

Wraps the subset of the oVirt v4 REST API the launcher consumes: VM lookup,
power commands, snapshot preview/commit and NIC reported devices. All calls go
through `_api_call`, which turns HTTP and transport failures into
`HypervisorError`.

The underlying `requests.Session` is created lazily on first use and shared
by every launch that targets this hypervisor.
"""

from __future__ import annotations

import logging
import threading
import warnings
from typing import Any

import requests
from urllib3.exceptions import InsecureRequestWarning

from ..config.credentials import HypervisorCredentials
from ..errors import HypervisorError, VmNotFound
from .types import Nic, ReportedDevice, SnapshotRef, VmHandle, VmStatus

logger = logging.getLogger(__name__)


class HypervisorClient:
    """Client for one oVirt engine.

    Args:
        creds: Engine URL, user, password and optional cluster scope.
    """

    def __init__(self, creds: HypervisorCredentials):
        self.creds = creds
        self._session: requests.Session | None = None
        self._session_lock = threading.Lock()
        self._cluster_id: str | None = None
        self._cluster_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.creds.name

    @property
    def description(self) -> str:
        return f"{self.creds.name} {self.creds.url}"

    @property
    def session(self) -> requests.Session:
        """Return the shared HTTP session, creating it once."""
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    self._session = self._build_session()
        return self._session

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.auth = (self.creds.username, self.creds.password)
        session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Version": "4",
            }
        )
        session.verify = not self.creds.insecure
        if self.creds.insecure:
            warnings.filterwarnings("ignore", category=InsecureRequestWarning)
        logger.debug("Opened API session to %s", self.creds.url)
        return session

    def close(self) -> None:
        with self._session_lock:
            if self._session is not None:
                self._session.close()
                self._session = None

    def _api_call(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated engine API call.

        Args:
            method: HTTP method.
            endpoint: Path below the API root, e.g. "/vms".
            data: JSON body for actions.
            params: Query string parameters.

        Returns:
            Parsed JSON response (empty dict for empty bodies).

        Raises:
            HypervisorError: On connection failures or HTTP status >= 400.
        """
        url = f"{self.creds.url.rstrip('/')}{endpoint}"
        try:
            resp = self.session.request(
                method, url, json=data, params=params, timeout=self.creds.timeout
            )
        except requests.RequestException as e:
            raise HypervisorError(f"oVirt API {method} {endpoint} failed: {e}") from e

        if resp.status_code >= 400:
            raise HypervisorError(
                f"oVirt API {method} {endpoint} failed: "
                f"{resp.status_code} {_fault_detail(resp)}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        return resp.json()

    # -----------------------
    # Cluster and VM lookup
    # -----------------------

    def cluster_id(self) -> str | None:
        """Resolve and cache the configured cluster's id (None when unscoped)."""
        if not self.creds.cluster:
            return None
        if self._cluster_id is None:
            with self._cluster_lock:
                if self._cluster_id is None:
                    result = self._api_call(
                        "GET",
                        "/clusters",
                        params={
                            "search": f"name={self.creds.cluster}",
                            "case_sensitive": "false",
                        },
                    )
                    clusters = result.get("cluster") or []
                    if not clusters:
                        raise HypervisorError(
                            f"Cluster '{self.creds.cluster}' not found on {self.creds.url}"
                        )
                    self._cluster_id = str(clusters[0]["id"])
        return self._cluster_id

    def list_vms(self) -> list[VmHandle]:
        """Return the VMs visible to this hypervisor, scoped to the cluster if set."""
        vms = [VmHandle.from_api(vm) for vm in self._api_call("GET", "/vms").get("vm") or []]
        cluster_id = self.cluster_id()
        if cluster_id is None:
            return vms
        return [vm for vm in vms if vm.cluster_id == cluster_id]

    def vm_names(self) -> list[str]:
        return [vm.name for vm in self.list_vms()]

    def get_vm(self, vm_name: str) -> VmHandle:
        """Return a freshly fetched handle for `vm_name`.

        Raises:
            VmNotFound: If no VM with that name exists in scope.
        """
        for vm in self.list_vms():
            if vm.name == vm_name:
                return vm
        raise VmNotFound(f"No VM named '{vm_name}' on {self.description}")

    def get_vm_status(self, vm: VmHandle) -> VmStatus:
        """Read the VM's current power state from the engine."""
        data = self._api_call("GET", f"/vms/{vm.id}")
        return VmStatus.parse(data.get("status"))

    def test_connection(self) -> int:
        """List VMs to prove the credentials work; returns the VM count."""
        return len(self._api_call("GET", "/vms").get("vm") or [])

    # -----------------------
    # Power commands
    # -----------------------

    def start_vm(self, vm: VmHandle) -> None:
        self._api_call("POST", f"/vms/{vm.id}/start", data={})

    def shutdown_vm(self, vm: VmHandle) -> None:
        self._api_call("POST", f"/vms/{vm.id}/shutdown", data={})

    # -----------------------
    # Snapshots
    # -----------------------

    def list_snapshots(self, vm: VmHandle) -> list[SnapshotRef]:
        result = self._api_call("GET", f"/vms/{vm.id}/snapshots")
        return [SnapshotRef.from_api(s) for s in result.get("snapshot") or []]

    def preview_snapshot(
        self, vm: VmHandle, snapshot: SnapshotRef, restore_memory: bool = False
    ) -> None:
        self._api_call(
            "POST",
            f"/vms/{vm.id}/previewsnapshot",
            data={"snapshot": {"id": snapshot.id}, "restore_memory": restore_memory},
        )

    def commit_snapshot(self, vm: VmHandle) -> None:
        self._api_call("POST", f"/vms/{vm.id}/commitsnapshot", data={})

    # -----------------------
    # Networking
    # -----------------------

    def list_nics(self, vm: VmHandle) -> list[Nic]:
        result = self._api_call("GET", f"/vms/{vm.id}/nics")
        return [Nic.from_api(n) for n in result.get("nic") or []]

    def list_reported_devices(self, vm: VmHandle, nic: Nic) -> list[ReportedDevice]:
        result = self._api_call("GET", f"/vms/{vm.id}/nics/{nic.id}/reporteddevices")
        return [ReportedDevice.from_api(d) for d in result.get("reported_device") or []]


def _fault_detail(resp: requests.Response) -> str:
    """Extract the engine's fault message, falling back to the raw body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("reason") or body)
    return str(body)
