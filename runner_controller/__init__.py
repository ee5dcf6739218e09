"""
Runner Controller module.

This module contains the reconciliation loop and its collaborators: the
state model, the transition engine, the control source and the container
manager. The controller reconciles the operator's target state with the
actual state of one Docker container.

The controller runs as its own process (see __main__), serving the HTTP
control endpoint alongside the loop.
"""

from .container_manager import ContainerInfo, ContainerManager
from .control import ControlSource, QueueControlSource
from .controller import ReconcileQueue, Runner
from .state_model import StateModel
from .timer import IntervalTimer
from .transitions import TRANSITIONS, TransitionEngine, plan

__all__ = [
    "ContainerInfo",
    "ContainerManager",
    "ControlSource",
    "IntervalTimer",
    "QueueControlSource",
    "ReconcileQueue",
    "Runner",
    "StateModel",
    "TRANSITIONS",
    "TransitionEngine",
    "plan",
]
