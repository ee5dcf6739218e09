"""
Control command sources.

A control source is any object that yields operator commands one at a time.
The runner owns its source explicitly; transports (the HTTP endpoint, tests)
feed a QueueControlSource instead of sharing a process-wide handle.
"""

import asyncio
import logging
from typing import Any, Protocol

from runner_common.errors import ControlChannelClosed
from runner_common.models import ControlCommand

logger = logging.getLogger(__name__)

_CLOSED = object()


class ControlSource(Protocol):
    """Asynchronous source of operator commands."""

    async def receive(self) -> ControlCommand:
        """
        Wait for the next command.

        Raises:
            ControlChannelError: If a message could not be read or decoded
            ControlChannelClosed: If the source will not yield any more commands
        """
        ...

    def close(self) -> None:
        """Release the source; pending and future receives report closure."""
        ...


class QueueControlSource:
    """
    In-memory control source backed by an asyncio.Queue.

    Raw payloads are queued as submitted and decoded on receive, so a
    malformed message surfaces to the consumer as a ControlChannelError
    rather than being dropped at submission time.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, payload: bytes | str | dict[str, Any] | ControlCommand) -> None:
        """
        Queue a control message.

        Args:
            payload: Raw wire message, decoded object, or a ControlCommand

        Raises:
            ControlChannelClosed: If the source has been closed
        """
        if self._closed:
            raise ControlChannelClosed("Control source is closed")
        self._queue.put_nowait(payload)

    async def receive(self) -> ControlCommand:
        if self._closed and self._queue.empty():
            raise ControlChannelClosed("Control source is closed")

        payload = await self._queue.get()
        if payload is _CLOSED:
            raise ControlChannelClosed("Control source is closed")
        if isinstance(payload, ControlCommand):
            return payload

        command = ControlCommand.decode(payload)
        logger.debug(f"Decoded control message {payload!r} as {command}")
        return command

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake up a pending receive()
        self._queue.put_nowait(_CLOSED)
