"""Error taxonomy for the launch pipeline.

Every failure the pipeline can produce is a `LaunchError` tagged with an
`ErrorKind`:

- TRANSIENT: infrastructure conditions that are retried locally within a
  documented budget (power-state polling, transport connect, address
  discovery). Reaching one of these means the budget is exhausted.
- CONFIGURATION: credential or configuration problems. Never retried.
- FATAL: infrastructure failures that are surfaced immediately.

The orchestrator wraps whatever escaped a stage in `LaunchFailed`, which is
the only error the host sees.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    FATAL = "fatal"


class LaunchError(Exception):
    """Base class for launch pipeline failures.

    Attributes:
        kind: Which family the error belongs to.
        stage: Pipeline stage that raised it (e.g. "power", "snapshot").
        recoverable: False when the VM may have been left in a state that
            needs operator intervention.
    """

    kind: ErrorKind = ErrorKind.FATAL
    stage: str = "launch"
    recoverable: bool = True


class TransientError(LaunchError):
    kind = ErrorKind.TRANSIENT


class ConfigurationError(LaunchError):
    kind = ErrorKind.CONFIGURATION


class FatalError(LaunchError):
    kind = ErrorKind.FATAL


# Hypervisor side


class HypervisorNotFound(ConfigurationError):
    stage = "hypervisor"


class VmNotFound(ConfigurationError):
    stage = "hypervisor"


class HypervisorError(FatalError):
    """The hypervisor API rejected a call or could not be reached."""

    stage = "hypervisor"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StateTransitionTimeout(TransientError):
    stage = "power"

    def __init__(self, message: str, last_state: object = None):
        super().__init__(message)
        self.last_state = last_state


class SnapshotNotFound(ConfigurationError):
    stage = "snapshot"


class SnapshotPreviewFailed(FatalError):
    """The preview was rejected; the VM disk is untouched."""

    stage = "snapshot"


class SnapshotCommitFailed(FatalError):
    """Preview succeeded but commit failed.

    The VM stays in a previewed, indeterminate state and needs an operator
    to commit or undo the preview by hand.
    """

    stage = "snapshot"
    recoverable = False
    vm_condition = "previewed"


class AddressDiscoveryTimeout(TransientError):
    stage = "address"


# Remote shell side


class TransportConnectFailed(TransientError):
    stage = "connect"


class AuthenticationFailed(ConfigurationError):
    stage = "authenticate"


class ChannelVerificationFailed(ConfigurationError):
    stage = "verify"


class TransferFailed(FatalError):
    stage = "transfer"


class TransferServiceUnavailable(Exception):
    """The primary transfer service is missing on the remote side.

    Only used to route to the fallback transfer; never reaches the host.
    """


class AgentStartFailed(FatalError):
    stage = "start"


class AttachFailed(FatalError):
    stage = "attach"


class BootstrapTimeout(FatalError):
    stage = "bootstrap"


class LaunchInterrupted(FatalError):
    """A cancellation signal aborted a wait."""


class LaunchFailed(Exception):
    """Umbrella error reported to the host for any failed launch."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    @property
    def stage(self) -> str:
        return getattr(self.cause, "stage", "launch")

    @property
    def kind(self) -> ErrorKind:
        return getattr(self.cause, "kind", ErrorKind.FATAL)
