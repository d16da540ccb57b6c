"""Find a guest-reported IP address for a VM."""

from __future__ import annotations

from ..errors import AddressDiscoveryTimeout
from ..hypervisor.client import HypervisorClient
from ..hypervisor.types import VmHandle
from ..log_sink import LaunchLog
from ..waiting import CancelToken


class AddressDiscovery:
    """Poll the VM's NIC reported devices for an address.

    Within a NIC the first device carrying an address wins. Every NIC is
    scanned, so when several NICs report addresses the last one scanned
    wins.

    No IPv4/IPv6 preference is applied: the first IP entry of a device is
    taken as reported.
    """

    def __init__(
        self,
        client: HypervisorClient,
        log: LaunchLog,
        cancel: CancelToken,
        retries: int = 5,
        wait: float = 30,
    ):
        self.client = client
        self.log = log
        self.cancel = cancel
        self.retries = retries
        self.wait = wait

    def scan(self, vm: VmHandle) -> str | None:
        """Run one pass over the VM's NICs; return the selected address or None."""
        address = None
        nics = self.client.list_nics(vm)
        if not nics:
            self.log.info("No NICs detected!")
        for nic in nics:
            self.log.info(f"Looking at NIC: {nic.name or nic.id}")
            devices = self.client.list_reported_devices(vm, nic)
            if not devices:
                self.log.info(f"No NIC Guest Info detected for {nic.name or nic.id}!")
            for dev in devices:
                if dev.ips_present and dev.ips[0].address_present:
                    address = dev.ips[0].address
                    break
        return address

    def discover(self, vm: VmHandle) -> str:
        """Scan up to `retries` times, `wait` seconds apart.

        Raises:
            AddressDiscoveryTimeout: If no address shows up within the budget.
        """
        for attempt in range(1, self.retries + 1):
            self.log.info(f"Scanning VM: {vm.name} (attempt {attempt}/{self.retries})")
            address = self.scan(vm)
            if address:
                self.log.info(f"IP of VM Obtained! {address}")
                return address
            if attempt < self.retries:
                self.log.error(f"Couldn't get IP address of VM.. retrying in {self.wait:g} s")
                self.cancel.sleep(self.wait)
        raise AddressDiscoveryTimeout(
            f"Couldn't find IP address of VM '{vm.name}' after {self.retries} attempts"
        )
