"""
Derivation of the workload's current state from the runtime.

The runtime is the only source of truth: on every query the state is
re-derived from the container listing, never carried over from a previous
observation.
"""

import logging
from typing import Protocol

from runner_common.errors import Conflict, ContainerNotFoundError
from runner_common.models import RunnerState

from .container_manager import ContainerInfo

logger = logging.getLogger(__name__)


class ContainerLister(Protocol):
    async def list_containers(self, name: str) -> list[ContainerInfo]: ...


class StateModel:
    """Observes the runtime and maps what it reports to a RunnerState."""

    def __init__(self, runtime: ContainerLister):
        self.runtime = runtime

    async def query(self, identity: str, image: str) -> RunnerState:
        """
        Derive the current state of the container named `identity`.

        Args:
            identity: Container name of the workload
            image: Image reference the workload is expected to run

        Returns:
            NON_EXIST if no container matches, otherwise the mapped state

        Raises:
            Conflict: If a matching container runs a different image, or
                several matching containers disagree about their state
            UnknownState: If the runtime reports an unrecognized status
            RuntimeOperationError: If the runtime listing fails
        """
        try:
            containers = await self.runtime.list_containers(identity)
        except ContainerNotFoundError:
            containers = []

        if not containers:
            logger.debug(f"No container found for {identity}")
            return RunnerState.NON_EXIST

        logger.debug(f"Found {len(containers)} container(s) named {identity}")
        return self.resolve(identity, image, containers)

    @staticmethod
    def resolve(
        identity: str, image: str, containers: list[ContainerInfo]
    ) -> RunnerState:
        """
        Reduce a non-empty container listing to a single state.

        A foreign image is never adopted: it fails the whole query even when
        another entry carries the expected image.
        """
        for container in containers:
            if container.image != image:
                raise Conflict(
                    identity,
                    f"another container with image {container.image} "
                    f"is using the name (expected {image})",
                )

        states = {RunnerState.from_status(c.status) for c in containers}
        if len(states) > 1:
            raise Conflict(
                identity,
                f"states {', '.join(sorted(states))} found for the same name",
            )
        return states.pop()
