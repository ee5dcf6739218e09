"""
Transition planning and execution.

The decision table maps (target, current) to the shortest operation
sequence the runtime accepts: a container must exist before it can start,
and only a running container can be paused. Planning is pure; execution
applies the plan one operation at a time and reports the state reached
after each step so a partial failure leaves the caller's view truthful.
"""

import logging
from collections.abc import Callable

from runner_common.errors import (
    InvalidConfiguration,
    RunnerError,
    RuntimeOperationError,
)
from runner_common.models import Operation, RunnerState
from runner_common.workload import (
    DEFAULT_NETWORK_NAME,
    DEFAULT_NETWORK_SUBNET,
    REDIS_SERVER_IP,
    WorkloadSpec,
)

from .container_manager import ContainerManager

logger = logging.getLogger(__name__)

S = RunnerState
CREATE, START, STOP = Operation.CREATE, Operation.START, Operation.STOP
PAUSE, UNPAUSE, REMOVE = Operation.PAUSE, Operation.UNPAUSE, Operation.REMOVE

# target -> current -> operations
TRANSITIONS: dict[RunnerState, dict[RunnerState, tuple[Operation, ...]]] = {
    S.NON_EXIST: {
        S.NON_EXIST: (),
        S.CREATED: (REMOVE,),
        S.RUNNING: (STOP, REMOVE),
        S.RESTARTING: (STOP, REMOVE),
        S.EXITED: (REMOVE,),
        S.PAUSED: (REMOVE,),
        S.DEAD: (REMOVE,),
    },
    S.CREATED: {
        S.NON_EXIST: (CREATE,),
        S.CREATED: (),
        # Stop leaves Exited; the next pass removes and recreates it
        S.RUNNING: (STOP,),
        S.RESTARTING: (STOP,),
        S.EXITED: (REMOVE, CREATE),
        S.PAUSED: (REMOVE, CREATE),
        # Remove first rather than a bare Create: a dead container keeps its name
        S.DEAD: (REMOVE, CREATE),
    },
    S.RUNNING: {
        S.NON_EXIST: (CREATE, START),
        S.CREATED: (START,),
        S.RUNNING: (),
        S.RESTARTING: (),  # the runtime is already bringing it back
        S.EXITED: (REMOVE, CREATE, START),
        S.PAUSED: (UNPAUSE,),
        S.DEAD: (REMOVE, CREATE, START),
    },
    S.EXITED: {
        S.NON_EXIST: (CREATE, START, STOP),
        S.CREATED: (START, STOP),
        S.RUNNING: (STOP,),
        S.RESTARTING: (STOP,),
        S.EXITED: (),
        S.PAUSED: (STOP,),
        S.DEAD: (REMOVE, CREATE, START, STOP),
    },
    S.PAUSED: {
        S.NON_EXIST: (CREATE, START, PAUSE),
        S.CREATED: (START, PAUSE),
        S.RUNNING: (PAUSE,),
        S.RESTARTING: (PAUSE,),
        S.EXITED: (START, PAUSE),
        S.PAUSED: (),
        S.DEAD: (REMOVE, CREATE, START, PAUSE),
    },
}

CHOOSABLE_TARGETS = tuple(TRANSITIONS)


def plan(current: RunnerState, target: RunnerState) -> list[Operation]:
    """
    Compute the operations that take the workload from `current` to `target`.

    Args:
        current: Observed state
        target: Requested state

    Returns:
        Ordered operations, empty if nothing needs to be done

    Raises:
        InvalidConfiguration: If `target` is an observed-only state
    """
    if target not in TRANSITIONS:
        raise InvalidConfiguration(f"{target} cannot be requested as a target state")
    return list(TRANSITIONS[target][current])


class TransitionEngine:
    """
    Applies planned operations to the workload's container.

    The engine holds no lifecycle state of its own; callers pass the
    current state in and receive every intermediate state through the
    `on_state` callback.
    """

    def __init__(
        self,
        spec: WorkloadSpec,
        runtime: ContainerManager,
        stop_grace_period: int = 1,
    ):
        """
        Initialize the transition engine.

        Args:
            spec: Workload being managed
            runtime: Runtime client used to execute operations
            stop_grace_period: Seconds the runtime waits before killing on stop
        """
        self.spec = spec
        self.runtime = runtime
        self.stop_grace_period = stop_grace_period
        self._network_ready = False

    async def transition(
        self,
        current: RunnerState,
        target: RunnerState,
        on_state: Callable[[RunnerState], None] | None = None,
    ) -> RunnerState:
        """
        Plan and apply the operations from `current` to `target`.

        Operations run strictly in order. The first failure aborts the rest
        of the sequence; states reported through `on_state` up to that point
        remain valid.

        Args:
            current: Observed state to start from
            target: Requested state
            on_state: Called with the new state after each successful operation

        Returns:
            The state reached (equal to `target` unless the plan is empty
            because the runtime is already converging)

        Raises:
            InvalidConfiguration: If `target` is an observed-only state
            RuntimeOperationError: If an operation fails
        """
        operations = plan(current, target)
        if not operations:
            if current != target:
                logger.debug(
                    f"{self.spec.identity}: {current} treated as converging "
                    f"to {target}"
                )
            return current

        logger.info(
            f"{self.spec.identity}: {current} -> {target} via "
            f"[{', '.join(op.value for op in operations)}]"
        )

        state = current
        for operation in operations:
            logger.debug(f"{self.spec.identity}: applying {operation} (state={state})")
            await self.apply(operation)
            state = operation.effect
            if on_state is not None:
                on_state(state)

        return state

    async def apply(self, operation: Operation) -> None:
        """
        Execute a single operation against the runtime.

        Raises:
            RuntimeOperationError: Carrying the identity and operation, with
                the runtime failure as its cause
        """
        identity = self.spec.identity
        try:
            if operation is Operation.CREATE:
                await self._create()
            elif operation is Operation.START:
                await self.runtime.start(identity)
            elif operation is Operation.STOP:
                await self.runtime.stop(identity, grace_period=self.stop_grace_period)
            elif operation is Operation.PAUSE:
                await self.runtime.pause(identity)
            elif operation is Operation.UNPAUSE:
                await self.runtime.unpause(identity)
            elif operation is Operation.REMOVE:
                await self.runtime.remove(identity, force=True, volumes=True)
        except RunnerError as e:
            raise RuntimeOperationError(identity, operation.value, str(e)) from e

    async def _create(self) -> None:
        spec = self.spec
        network = None
        ip_address = None

        if spec.uses_managed_network:
            if not self._network_ready:
                await self.runtime.ensure_network(
                    DEFAULT_NETWORK_NAME, DEFAULT_NETWORK_SUBNET
                )
                self._network_ready = True
            network = DEFAULT_NETWORK_NAME
            if spec.redis_server:
                ip_address = REDIS_SERVER_IP

        await self.runtime.create(
            spec.identity,
            spec.image_ref,
            command=spec.argv,
            env=spec.environment(),
            host_config=spec.host_config(),
            network=network,
            ip_address=ip_address,
        )
