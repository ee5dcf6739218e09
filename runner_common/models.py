"""
Domain models for the workload runner.

These are closed sets of values (lifecycle states, runtime operations and
operator commands). Strings only appear at the boundaries: the runtime's
status strings and the control channel's wire tags, each with an explicit
mapping that fails loudly or degrades to Invalid.
"""

import json
from enum import Enum
from typing import Any

from .errors import ControlChannelError, UnknownState


class RunnerState(str, Enum):
    """
    Lifecycle state of the managed container.

    RESTARTING and DEAD are observed-only: the controller reacts to them
    but never chooses them as a target.
    """

    NON_EXIST = "NonExist"
    CREATED = "Created"
    RUNNING = "Running"
    RESTARTING = "Restarting"
    EXITED = "Exited"
    PAUSED = "Paused"
    DEAD = "Dead"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_status(cls, status: str) -> "RunnerState":
        """
        Map a runtime status string to a RunnerState.

        Args:
            status: Status as reported by the runtime (e.g. "running")

        Returns:
            The matching RunnerState

        Raises:
            UnknownState: If the status string is not recognized
        """
        try:
            return _STATUS_TO_STATE[status]
        except KeyError:
            raise UnknownState(status) from None

    @property
    def observed_only(self) -> bool:
        return self in (RunnerState.RESTARTING, RunnerState.DEAD)


_STATUS_TO_STATE = {
    "created": RunnerState.CREATED,
    "running": RunnerState.RUNNING,
    "restarting": RunnerState.RESTARTING,
    "exited": RunnerState.EXITED,
    "paused": RunnerState.PAUSED,
    "dead": RunnerState.DEAD,
}


class Operation(str, Enum):
    """A single runtime lifecycle operation."""

    CREATE = "create"
    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    REMOVE = "remove"

    def __str__(self) -> str:
        return self.value

    @property
    def effect(self) -> RunnerState:
        """State the container is in once this operation succeeded."""
        return _OPERATION_EFFECTS[self]


_OPERATION_EFFECTS = {
    Operation.CREATE: RunnerState.CREATED,
    Operation.START: RunnerState.RUNNING,
    Operation.STOP: RunnerState.EXITED,
    Operation.PAUSE: RunnerState.PAUSED,
    Operation.UNPAUSE: RunnerState.RUNNING,
    Operation.REMOVE: RunnerState.NON_EXIST,
}


class ControlCommand(str, Enum):
    """Operator command received over the control channel."""

    START = "Start"
    STOP = "Stop"
    REMOVE = "Remove"
    QUIT = "Quit"
    INVALID = "Invalid"

    def __str__(self) -> str:
        return self.value

    @property
    def target_state(self) -> RunnerState | None:
        """Target state requested by this command, None for Quit/Invalid."""
        return _COMMAND_TARGETS.get(self)

    @classmethod
    def from_tag(cls, tag: Any) -> "ControlCommand":
        """Map a wire tag to a command; anything unknown is INVALID."""
        if isinstance(tag, str):
            for command in (cls.START, cls.STOP, cls.REMOVE, cls.QUIT):
                if command.value == tag:
                    return command
        return cls.INVALID

    @classmethod
    def decode(cls, payload: bytes | str | dict[str, Any]) -> "ControlCommand":
        """
        Decode a control message into a command.

        Accepted forms are a JSON string tag (``"Start"``) and a JSON object
        with a ``command`` key (``{"command": "Start"}``). Already-decoded
        dicts are accepted as well. Trailing NUL padding and whitespace are
        ignored.

        Args:
            payload: Raw message body or decoded object

        Returns:
            The decoded command, INVALID if the tag is absent or unknown

        Raises:
            ControlChannelError: If the bytes are not valid UTF-8
        """
        if isinstance(payload, dict):
            return cls.from_tag(payload.get("command"))

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ControlChannelError(
                    f"Control message is not valid UTF-8: {e}"
                ) from e

        body = payload.strip().rstrip("\0").strip()
        try:
            message = json.loads(body)
        except json.JSONDecodeError:
            return cls.INVALID

        if isinstance(message, dict):
            return cls.from_tag(message.get("command"))
        return cls.from_tag(message)


_COMMAND_TARGETS = {
    ControlCommand.START: RunnerState.RUNNING,
    ControlCommand.STOP: RunnerState.EXITED,
    ControlCommand.REMOVE: RunnerState.NON_EXIST,
}
