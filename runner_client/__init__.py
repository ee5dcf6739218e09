"""
Runner Client module.

HTTP client and operator CLI (`runnerctl`) for a running workload runner.
"""

from .client import get_control_url, get_state, send_command

__all__ = ["get_control_url", "get_state", "send_command"]
