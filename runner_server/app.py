"""
HTTP control endpoint for the workload runner.

The endpoint is a transport only: it forwards control messages into the
runner's control source and reports the runner's view of the workload.
All decisions are made by the reconciliation loop.
"""

import logging
from typing import Any, Protocol

from fastapi import FastAPI, HTTPException, Request

from runner_common.errors import ControlChannelClosed, ControlChannelError
from runner_common.models import ControlCommand
from runner_controller.control import QueueControlSource

logger = logging.getLogger(__name__)


class StatusProvider(Protocol):
    def snapshot(self) -> dict[str, Any]: ...


def create_app(control: QueueControlSource, runner: StatusProvider) -> FastAPI:
    """
    Create the control application.

    Args:
        control: Control source the loop reads commands from
        runner: Object reporting the current/target state of the workload

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="Workload Runner Control")

    @app.post("/control", status_code=202)
    async def post_control(request: Request) -> dict[str, Any]:
        """
        Submit a control command.

        The body is a tagged message, either `"Start"` or
        `{"command": "Start"}`. Unknown tags are accepted and reported as
        "Invalid"; the loop logs and ignores them.
        """
        body = await request.body()
        try:
            command = ControlCommand.decode(body)
        except ControlChannelError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        try:
            control.submit(body)
        except ControlChannelClosed as e:
            raise HTTPException(
                status_code=503, detail="Control channel is closed"
            ) from e

        client = request.client.host if request.client else "unknown"
        logger.info(f"Control command {command} from {client}")
        return {"accepted": True, "command": command.value}

    @app.get("/state")
    async def get_state() -> dict[str, Any]:
        """Report the workload's identity, current state and target state."""
        return runner.snapshot()

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
