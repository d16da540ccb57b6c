"""Tests for PowerStateController: idempotent transitions and bounded polling."""

from __future__ import annotations

import pytest

from conftest import FakeHypervisorClient
from ovirt_launcher.errors import ErrorKind, StateTransitionTimeout
from ovirt_launcher.hypervisor.types import VmStatus
from ovirt_launcher.launcher.power import MIN_UNLOCK_POLL, PowerStateController


class SleepClock:
    """Clock that advances by whatever the recording token is asked to sleep."""

    def __init__(self, token):
        self.now = 0.0
        self.seen = 0
        self.token = token

    def __call__(self) -> float:
        fresh = self.token.sleeps[self.seen:]
        self.seen = len(self.token.sleeps)
        self.now += sum(fresh)
        return self.now


# ---------------------------------------------------------------------------
# ensure_down / ensure_up
# ---------------------------------------------------------------------------


class TestEnsureDown:
    def test_already_down_issues_no_command(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.DOWN)
        power = PowerStateController(client, make_session(client))

        power.ensure_down(client.vm)

        assert client.commands() == []
        assert token.sleeps == []

    def test_up_vm_is_shut_down_once(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.UP, lag=2)
        power = PowerStateController(client, make_session(client, retries=5))

        power.ensure_down(client.vm)

        assert client.commands() == ["shutdown"]
        assert client.state is VmStatus.DOWN
        assert token.sleeps == [5, 5]

    def test_timeout_after_exact_retry_budget(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.UP, transitions=False)
        power = PowerStateController(client, make_session(client, retries=3, wait_interval=7))

        with pytest.raises(StateTransitionTimeout) as exc_info:
            power.ensure_down(client.vm)

        polls = [c for c in client.calls if c[0] == "status"]
        # one initial read plus one per retry
        assert len(polls) == 4
        assert token.sleeps == [7, 7, 7]
        assert exc_info.value.last_state is VmStatus.UP
        assert exc_info.value.kind is ErrorKind.TRANSIENT
        assert client.commands() == ["shutdown"]

    def test_timeout_logs_give_up(self, make_session, launch_log):
        client = FakeHypervisorClient(state=VmStatus.UP, transitions=False)
        power = PowerStateController(client, make_session(client, retries=1))

        with pytest.raises(StateTransitionTimeout):
            power.ensure_down(client.vm)

        assert "VM did not shutdown properly. Giving up!" in launch_log.getvalue()


class TestEnsureUp:
    def test_already_up_issues_no_command(self, make_session):
        client = FakeHypervisorClient(state=VmStatus.UP)
        power = PowerStateController(client, make_session(client))

        power.ensure_up(client.vm)

        assert client.commands() == []

    def test_down_vm_is_started(self, make_session, launch_log):
        client = FakeHypervisorClient(state=VmStatus.DOWN, lag=3)
        power = PowerStateController(client, make_session(client, retries=3))

        power.ensure_up(client.vm)

        assert client.commands() == ["start"]
        assert client.state is VmStatus.UP
        assert "VM is now online!" in launch_log.getvalue()

    def test_powering_up_is_polled_without_start_command(self, make_session, token, launch_log):
        client = FakeHypervisorClient(state=VmStatus.POWERING_UP)
        client.pending = [VmStatus.POWERING_UP, VmStatus.POWERING_UP, VmStatus.UP]
        power = PowerStateController(client, make_session(client))

        power.ensure_up(client.vm)

        assert client.commands() == []
        assert client.state is VmStatus.UP
        assert len(token.sleeps) == 2
        assert "already powering up" in launch_log.getvalue()

    def test_powering_up_that_stalls_times_out(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.POWERING_UP)
        power = PowerStateController(client, make_session(client, retries=2))

        with pytest.raises(StateTransitionTimeout) as exc_info:
            power.ensure_up(client.vm)

        assert client.commands() == []
        assert token.sleeps == [5, 5]
        assert exc_info.value.last_state is VmStatus.POWERING_UP

    def test_start_that_never_lands_times_out(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.DOWN, lag=10)
        power = PowerStateController(client, make_session(client, retries=4))

        with pytest.raises(StateTransitionTimeout) as exc_info:
            power.ensure_up(client.vm)

        assert len(token.sleeps) == 4
        assert exc_info.value.last_state is VmStatus.POWERING_UP

    def test_zero_retries_fails_without_polling(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.DOWN)
        power = PowerStateController(client, make_session(client, retries=0))

        with pytest.raises(StateTransitionTimeout) as exc_info:
            power.ensure_up(client.vm)

        assert token.sleeps == []
        assert exc_info.value.last_state is VmStatus.DOWN


# ---------------------------------------------------------------------------
# wait_until_unlocked
# ---------------------------------------------------------------------------


class TestWaitUntilUnlocked:
    def test_returns_immediately_when_not_locked(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.DOWN)
        power = PowerStateController(client, make_session(client))

        power.wait_until_unlocked(client.vm)

        assert token.sleeps == []

    def test_waits_past_the_power_retry_budget(self, make_session, token):
        client = FakeHypervisorClient(state=VmStatus.DOWN)
        client.pending = [VmStatus.IMAGE_LOCKED] * 10 + [VmStatus.DOWN]
        power = PowerStateController(client, make_session(client, retries=2, wait_interval=1))

        power.wait_until_unlocked(client.vm)

        assert len(token.sleeps) == 10
        assert client.state is VmStatus.DOWN

    def test_optional_cap_raises(self, make_session, token):
        clock = SleepClock(token)
        client = FakeHypervisorClient(state=VmStatus.IMAGE_LOCKED)
        session = make_session(client, wait_interval=10, unlock_timeout=30)
        power = PowerStateController(client, session, clock=clock)

        with pytest.raises(StateTransitionTimeout) as exc_info:
            power.wait_until_unlocked(client.vm)

        assert token.sleeps == [10, 10, 10]
        assert exc_info.value.last_state is VmStatus.IMAGE_LOCKED

    def test_cap_holds_with_zero_wait_interval(self, make_session, token):
        clock = SleepClock(token)
        client = FakeHypervisorClient(state=VmStatus.IMAGE_LOCKED)
        session = make_session(client, wait_interval=0, unlock_timeout=5)
        power = PowerStateController(client, session, clock=clock)

        with pytest.raises(StateTransitionTimeout, match="still image locked after 5s"):
            power.wait_until_unlocked(client.vm)

        assert token.sleeps == [MIN_UNLOCK_POLL] * 5
        assert len([c for c in client.calls if c[0] == "status"]) == 6

    def test_cap_counts_time_spent_in_status_reads(self, make_session, token):
        clock = SleepClock(token)
        client = FakeHypervisorClient(state=VmStatus.IMAGE_LOCKED)
        read = client.get_vm_status

        def slow_read(vm):
            clock.now += 20
            return read(vm)

        client.get_vm_status = slow_read
        session = make_session(client, wait_interval=1, unlock_timeout=30)
        power = PowerStateController(client, session, clock=clock)

        with pytest.raises(StateTransitionTimeout):
            power.wait_until_unlocked(client.vm)

        assert token.sleeps == [1]

    def test_cancel_aborts_wait(self, make_session, token):
        from ovirt_launcher.errors import LaunchInterrupted

        client = FakeHypervisorClient(state=VmStatus.IMAGE_LOCKED)
        power = PowerStateController(client, make_session(client))
        token.cancel()

        with pytest.raises(LaunchInterrupted):
            power.wait_until_unlocked(client.vm)
