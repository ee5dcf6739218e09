"""
Runner Common module.

This module contains the shared domain models, workload descriptor and
error taxonomy used across the runner components (controller, server,
client).

The common module has no dependencies on other runner_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .errors import (
    Conflict,
    ContainerNotFoundError,
    ControlChannelClosed,
    ControlChannelError,
    InvalidConfiguration,
    RunnerError,
    RuntimeOperationError,
    UnknownState,
)
from .models import ControlCommand, Operation, RunnerState
from .workload import DeviceMapping, HostConfig, PortBinding, WorkloadSpec

__all__ = [
    "Conflict",
    "ContainerNotFoundError",
    "ControlChannelClosed",
    "ControlChannelError",
    "ControlCommand",
    "DeviceMapping",
    "HostConfig",
    "InvalidConfiguration",
    "Operation",
    "PortBinding",
    "RunnerError",
    "RunnerState",
    "RuntimeOperationError",
    "UnknownState",
    "WorkloadSpec",
]
