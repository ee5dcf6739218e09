"""
Error taxonomy for the workload runner.

Every error raised by the runner derives from RunnerError so the process
entrypoint can tell controller failures apart from programming errors.
Which of them are fatal is decided by the reconciliation loop, not here.
"""


class RunnerError(Exception):
    """Base class for all workload runner errors."""


class InvalidConfiguration(RunnerError):
    """The workload descriptor is missing fields or carries bad values."""


class RuntimeOperationError(RunnerError):
    """
    A container runtime operation failed.

    Attributes:
        identity: Container name the operation was issued against
        operation: Name of the attempted operation (e.g. "create", "list")
        detail: Human readable failure description (usually runtime stderr)
    """

    def __init__(self, identity: str, operation: str, detail: str = ""):
        self.identity = identity
        self.operation = operation
        self.detail = detail.strip()
        message = f"{operation} failed for {identity}"
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message)


class ContainerNotFoundError(RuntimeOperationError):
    """The runtime reported that the named container does not exist."""


class Conflict(RunnerError):
    """
    The workload identity is ambiguous.

    Raised when runtime entities sharing the identity advertise a foreign
    image or disagree about their state.
    """

    def __init__(self, identity: str, reason: str):
        self.identity = identity
        self.reason = reason
        super().__init__(f"Identity conflict for {identity}: {reason}")


class UnknownState(RunnerError):
    """The runtime reported a status string that maps to no RunnerState."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unrecognized container state: {status!r}")


class ControlChannelError(RunnerError):
    """A control command could not be read from the control source."""


class ControlChannelClosed(ControlChannelError):
    """The control source is closed and will not yield more commands."""
