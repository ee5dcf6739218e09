"""
Runner Server module.

This module contains the FastAPI application that exposes the runner's
control channel over HTTP. It is served in-process by the runner
entrypoint, so commands land directly in the loop's control source.
"""

from .app import create_app

__all__ = ["create_app"]
