"""HTTP client for the workload runner's control endpoint."""

import os
from typing import Any

import requests

DEFAULT_CONTROL_URL = "http://127.0.0.1:8765"

COMMANDS = ("Start", "Stop", "Remove", "Quit")


def get_control_url(cli_arg: str | None = None) -> str:
    """
    Get the control endpoint URL.

    Priority: command line argument, then RUNNER_CONTROL_URL, then default.
    """
    if cli_arg:
        return cli_arg.rstrip("/")
    return os.environ.get("RUNNER_CONTROL_URL", DEFAULT_CONTROL_URL).rstrip("/")


def send_command(
    command: str, control_url: str = DEFAULT_CONTROL_URL
) -> dict[str, Any]:
    """
    Send a control command to a running workload runner.

    Args:
        command: One of "Start", "Stop", "Remove", "Quit"
        control_url: Base URL of the control endpoint

    Returns:
        dict: Server acknowledgement, e.g. {"accepted": True, "command": "Start"}

    Raises:
        ValueError: If the command is not a known control command
        RuntimeError: If the request fails due to network or server error
    """
    if command not in COMMANDS:
        raise ValueError(f"Unknown command {command!r}, expected one of {COMMANDS}")

    try:
        response = requests.post(
            f"{control_url}/control",
            json={"command": command},
            timeout=10,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error sending {command} to runner: {e}")


def get_state(control_url: str = DEFAULT_CONTROL_URL) -> dict[str, Any]:
    """
    Fetch the runner's view of its workload.

    Returns:
        dict: {"identity", "image", "current_state", "target_state"}

    Raises:
        RuntimeError: If the request fails due to network or server error
    """
    try:
        response = requests.get(f"{control_url}/state", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error fetching runner state: {e}")
