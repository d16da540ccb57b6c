"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest

from ovirt_launcher.errors import (
    AddressDiscoveryTimeout,
    AgentStartFailed,
    AttachFailed,
    AuthenticationFailed,
    BootstrapTimeout,
    ChannelVerificationFailed,
    ErrorKind,
    HypervisorError,
    HypervisorNotFound,
    LaunchError,
    LaunchFailed,
    SnapshotCommitFailed,
    SnapshotNotFound,
    SnapshotPreviewFailed,
    StateTransitionTimeout,
    TransferFailed,
    TransportConnectFailed,
    VmNotFound,
)


@pytest.mark.parametrize(
    "error_cls, kind",
    [
        (StateTransitionTimeout, ErrorKind.TRANSIENT),
        (TransportConnectFailed, ErrorKind.TRANSIENT),
        (AddressDiscoveryTimeout, ErrorKind.TRANSIENT),
        (AuthenticationFailed, ErrorKind.CONFIGURATION),
        (ChannelVerificationFailed, ErrorKind.CONFIGURATION),
        (SnapshotNotFound, ErrorKind.CONFIGURATION),
        (HypervisorNotFound, ErrorKind.CONFIGURATION),
        (VmNotFound, ErrorKind.CONFIGURATION),
        (HypervisorError, ErrorKind.FATAL),
        (SnapshotPreviewFailed, ErrorKind.FATAL),
        (SnapshotCommitFailed, ErrorKind.FATAL),
        (TransferFailed, ErrorKind.FATAL),
        (AgentStartFailed, ErrorKind.FATAL),
        (AttachFailed, ErrorKind.FATAL),
        (BootstrapTimeout, ErrorKind.FATAL),
    ],
)
def test_error_kinds(error_cls, kind):
    err = error_cls("boom")

    assert isinstance(err, LaunchError)
    assert err.kind is kind


def test_only_commit_failure_is_unrecoverable():
    assert SnapshotCommitFailed("x").recoverable is False
    assert SnapshotPreviewFailed("x").recoverable is True
    assert SnapshotCommitFailed.vm_condition == "previewed"


def test_launch_failed_exposes_cause():
    cause = TransportConnectFailed("refused")

    err = LaunchFailed("Launch of 'n' failed: refused", cause=cause)

    assert err.cause is cause
    assert err.stage == "connect"
    assert err.kind is ErrorKind.TRANSIENT


def test_launch_failed_with_foreign_cause():
    err = LaunchFailed("boom", cause=RuntimeError("x"))

    assert err.stage == "launch"
    assert err.kind is ErrorKind.FATAL
