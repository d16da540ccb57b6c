"""Drive a VM to a target power state with bounded polling."""

from __future__ import annotations

import time
from typing import Callable

from ..errors import StateTransitionTimeout
from ..hypervisor.client import HypervisorClient
from ..hypervisor.types import VmHandle, VmStatus
from .base import LaunchSession

# Lower bound between image-lock polls, so a zero wait interval cannot spin
# on the engine API.
MIN_UNLOCK_POLL = 1.0


class PowerStateController:
    """Power transitions for the session's VM.

    `ensure_down` and `ensure_up` read the current state first and issue no
    command when the VM is already there. Otherwise the command is sent once
    and the state is polled `retries` times, `wait_interval` apart. A VM that
    is already powering up gets no start command; it is only polled.

    `wait_until_unlocked` has no bound unless `unlock_timeout` is set on the
    session. The timeout is measured on `clock`, not summed from intervals.
    """

    def __init__(
        self,
        client: HypervisorClient,
        session: LaunchSession,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.session = session
        self.clock = clock

    @property
    def log(self):
        return self.session.log

    def status(self, vm: VmHandle) -> VmStatus:
        return self.client.get_vm_status(vm)

    def ensure_down(self, vm: VmHandle) -> None:
        state = self.status(vm)
        if state is VmStatus.DOWN:
            self.log.info(f"{vm.name} is already shutdown")
            return
        self.log.info(f"{vm.name} is to be shutdown (currently {state.value})")
        self.client.shutdown_vm(vm)
        self._wait_for(vm, VmStatus.DOWN, "shutdown", state)
        self.log.info("VM is now shutdown")

    def ensure_up(self, vm: VmHandle) -> None:
        state = self.status(vm)
        if state is VmStatus.UP:
            self.log.info(f"{vm.name} is already up")
            return
        if state is VmStatus.POWERING_UP:
            self.log.info(f"{vm.name} is already powering up")
        else:
            self.log.info(f"{vm.name} is to be started (currently {state.value})")
            self.client.start_vm(vm)
        self._wait_for(vm, VmStatus.UP, "start", state)
        self.log.info("VM is now online!")

    def _wait_for(
        self, vm: VmHandle, target: VmStatus, verb: str, last: VmStatus
    ) -> None:
        for _ in range(self.session.retries):
            self.log.info(f"Waiting for {vm.name} to {verb}...")
            self.session.cancel.sleep(self.session.wait_interval)
            last = self.status(vm)
            if last is target:
                return
        self.log.error(f"VM did not {verb} properly. Giving up!")
        raise StateTransitionTimeout(
            f"VM '{vm.name}' did not reach '{target.value}' after "
            f"{self.session.retries} checks (last state: {last.value})",
            last_state=last,
        )

    def wait_until_unlocked(self, vm: VmHandle) -> None:
        """Block while the VM reports `image_locked`."""
        limit = self.session.unlock_timeout
        started = self.clock()
        interval = max(self.session.wait_interval, MIN_UNLOCK_POLL)
        while self.status(vm) is VmStatus.IMAGE_LOCKED:
            waited = self.clock() - started
            if limit is not None and waited >= limit:
                raise StateTransitionTimeout(
                    f"VM '{vm.name}' still image locked after {waited:g}s",
                    last_state=VmStatus.IMAGE_LOCKED,
                )
            self.log.info("VM is image locked. Waiting till it's really down...")
            self.session.cancel.sleep(interval)
