"""
Workload runner with reconciliation loop for a single Docker container.

This module implements a Kubernetes-style controller scoped to one
workload: it continuously reconciles the operator-declared target state
with the container's actual state, taking corrective actions when they
diverge.

The loop races three sources and services exactly one of them at a time:
operator commands, queued reconciliation requests and the drift-check
timer. Because handling a source (including a multi-step transition) runs
to completion before the next one is picked, current_state and
target_state need no locking.
"""

import asyncio
import logging
from typing import Any

from runner_common.errors import (
    ControlChannelClosed,
    ControlChannelError,
    RunnerError,
    RuntimeOperationError,
)
from runner_common.models import ControlCommand, RunnerState
from runner_common.workload import WorkloadSpec

from .container_manager import ContainerManager
from .control import ControlSource, QueueControlSource
from .state_model import StateModel
from .timer import IntervalTimer
from .transitions import TransitionEngine, plan

logger = logging.getLogger(__name__)
workload_logger = logging.getLogger("runner_controller.workload")

# Observed-only states mapped to the nearest state that can be requested
_SETTLED_STATES = {
    RunnerState.RESTARTING: RunnerState.RUNNING,
    RunnerState.DEAD: RunnerState.NON_EXIST,
}


class ReconcileQueue:
    """
    Pending reconciliation intent.

    Holds at most one request: asking again while a request is pending is
    a no-op, since servicing it re-reads the latest target anyway.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)

    def request(self, reason: str) -> bool:
        """
        Ask for a reconciliation.

        Returns:
            True if a new request was queued, False if one was already pending
        """
        try:
            self._queue.put_nowait(reason)
        except asyncio.QueueFull:
            logger.debug(f"Reconciliation already pending, coalesced ({reason})")
            return False
        return True

    async def get(self) -> str:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class Runner:
    """
    Controller that reconciles one workload's container with its target state.

    This controller runs a loop that:
    1. Applies operator commands to the target state
    2. Services reconciliation requests by re-querying the runtime and
       converging through the transition table
    3. Periodically re-derives the current state to detect external drift
    """

    def __init__(
        self,
        spec: WorkloadSpec,
        runtime: ContainerManager | None = None,
        control: ControlSource | None = None,
        stop_grace_period: int = 1,
        closed_quit_threshold: int = 3,
        follow_logs: bool = False,
    ):
        """
        Initialize the runner. Prefer Runner.create(), which also queries
        the initial state.

        Args:
            spec: Workload to manage
            runtime: Runtime client for Docker operations
            control: Source of operator commands
            stop_grace_period: Seconds the runtime waits before killing on stop
            closed_quit_threshold: Consecutive closed-channel reads that
                count as an implicit Quit
            follow_logs: Forward the workload's output to logging while running
        """
        self.spec = spec
        self.runtime = runtime or ContainerManager()
        self.control = control or QueueControlSource()
        self.closed_quit_threshold = closed_quit_threshold
        self.follow_logs = follow_logs

        self.state_model = StateModel(self.runtime)
        self.engine = TransitionEngine(
            spec, self.runtime, stop_grace_period=stop_grace_period
        )
        self.requests = ReconcileQueue()
        self.timer = IntervalTimer(spec.monitor_interval)

        self.current_state = RunnerState.NON_EXIST
        self.target_state = RunnerState.NON_EXIST
        self._log_task: asyncio.Task | None = None

    @classmethod
    async def create(
        cls,
        spec: WorkloadSpec,
        runtime: ContainerManager | None = None,
        control: ControlSource | None = None,
        **kwargs: Any,
    ) -> "Runner":
        """
        Construct a runner and derive its current state from the runtime.

        The target state starts at the observed state (or the state an
        observed-only state settles into), so nothing is changed until
        run() or a command sets a target.

        Raises:
            Conflict: If the workload identity is ambiguous
            RuntimeOperationError: If the runtime cannot be queried
        """
        runner = cls(spec, runtime=runtime, control=control, **kwargs)
        state = await runner.update_state()
        runner.target_state = _SETTLED_STATES.get(state, state)
        logger.info(f"{spec.identity}: initial container state {state}")
        return runner

    @property
    def identity(self) -> str:
        return self.spec.identity

    def snapshot(self) -> dict[str, Any]:
        """Current view of the workload, for status reporting."""
        return {
            "identity": self.identity,
            "image": self.spec.image_ref,
            "current_state": self.current_state.value,
            "target_state": self.target_state.value,
        }

    async def update_state(self) -> RunnerState:
        """Re-derive current_state from the runtime."""
        self.current_state = await self.state_model.query(
            self.identity, self.spec.image_ref
        )
        return self.current_state

    def _record_state(self, state: RunnerState) -> None:
        logger.debug(f"{self.identity}: state now {state}")
        self.current_state = state

    async def ensure_image(self) -> None:
        """Pull the workload image if it is not available locally."""
        image = self.spec.image_ref
        if await self.runtime.image_exists(image):
            return
        logger.info(f"Installing image {image}")
        await self.runtime.pull_image(image)

    def handle_command(self, command: ControlCommand) -> bool:
        """
        Apply an operator command to the target state.

        Every command that changes the target also queues a reconciliation
        request; Quit and invalid commands never do.

        Args:
            command: Decoded operator command

        Returns:
            False if the command asks the loop to quit, True otherwise
        """
        logger.info(
            f"{self.identity}: received {command} "
            f"(current={self.current_state}, target={self.target_state})"
        )

        if command is ControlCommand.QUIT:
            return False

        target = command.target_state
        if target is None:
            logger.warning(f"{self.identity}: ignoring invalid control command")
            return True

        if target != self.target_state:
            logger.info(f"{self.identity}: target {self.target_state} -> {target}")
        self.target_state = target
        self.requests.request(f"command {command}")
        return True

    async def reconcile_once(self) -> RunnerState:
        """
        Perform one reconciliation.

        Re-queries the runtime (the container may have drifted since the
        request was queued) and converges toward the current target.

        Returns:
            The state reached

        Raises:
            Conflict: If the workload identity became ambiguous
            RuntimeOperationError: If a runtime operation failed; current_state
                is left at the last state successfully reached
        """
        await self.update_state()
        before = self.current_state
        target = self.target_state

        try:
            state = await self.engine.transition(
                before, target, on_state=self._record_state
            )
        except RuntimeOperationError as e:
            logger.error(
                f"{self.identity}: {e.operation} failed while converging "
                f"{before} -> {target} (now {self.current_state}): {e}"
            )
            raise

        if state != before:
            logger.info(f"{self.identity}: state {before} -> {state} (target={target})")
        else:
            logger.debug(f"{self.identity}: state {state} (target={target})")

        if self.follow_logs and state is RunnerState.RUNNING:
            self._start_log_forwarding()
        return state

    async def check_drift(self) -> bool:
        """
        Re-derive the current state and queue a reconciliation on drift.

        Returns:
            True if a new reconciliation request was queued
        """
        previous = self.current_state
        state = await self.update_state()

        if state != previous:
            logger.info(
                f"{self.identity}: state changed {previous} -> {state} "
                f"(target={self.target_state})"
            )
        else:
            logger.debug(
                f"{self.identity}: state unchanged {state} (target={self.target_state})"
            )

        if state != self.target_state:
            return self.requests.request("drift")
        return False

    async def run(
        self, initial_target: RunnerState | None = RunnerState.RUNNING
    ) -> None:
        """
        Run the reconciliation loop until Quit or a fatal error.

        Args:
            initial_target: Target to converge to at startup, None to keep
                the observed state until a command arrives

        Raises:
            InvalidConfiguration: If initial_target cannot be requested
            Conflict: If the workload identity is or becomes ambiguous
            RuntimeOperationError: If a reconciliation step fails
        """
        if initial_target is not None:
            plan(self.current_state, initial_target)  # validates the target

        await self.ensure_image()

        if initial_target is not None:
            self.target_state = initial_target
            self.requests.request("startup")

        self.timer.reset()
        control_task: asyncio.Task | None = None
        request_task: asyncio.Task | None = None
        timer_task: asyncio.Task | None = None
        closed_reads = 0

        logger.info(f"{self.identity}: reconciliation loop started")
        try:
            while True:
                if control_task is None:
                    control_task = asyncio.create_task(self.control.receive())
                if request_task is None:
                    request_task = asyncio.create_task(self.requests.get())
                if timer_task is None:
                    timer_task = asyncio.create_task(self.timer.wait_timeup())

                done, _ = await asyncio.wait(
                    {control_task, request_task, timer_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                # Service one ready source per iteration; other ready tasks
                # keep their results for the next pass.
                if control_task in done:
                    task, control_task = control_task, None
                    try:
                        command = task.result()
                    except ControlChannelClosed as e:
                        closed_reads += 1
                        logger.warning(f"{self.identity}: control channel closed: {e}")
                        if closed_reads >= self.closed_quit_threshold:
                            logger.info(
                                f"{self.identity}: control channel gone, quitting"
                            )
                            break
                        continue
                    except ControlChannelError as e:
                        logger.warning(f"{self.identity}: bad control message: {e}")
                        continue

                    closed_reads = 0
                    if not self.handle_command(command):
                        break

                elif request_task in done:
                    task, request_task = request_task, None
                    reason = task.result()
                    logger.debug(f"{self.identity}: servicing request ({reason})")
                    await self.reconcile_once()

                elif timer_task in done:
                    task, timer_task = timer_task, None
                    task.result()
                    await self.check_drift()
        finally:
            await self._shutdown(control_task, request_task, timer_task)

        logger.info(
            f"{self.identity}: reconciliation loop stopped "
            f"(current={self.current_state}, target={self.target_state})"
        )

    async def _shutdown(self, *tasks: asyncio.Task | None) -> None:
        pending = [t for t in tasks if t is not None]
        if self._log_task is not None:
            pending.append(self._log_task)
            self._log_task = None

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        self.control.close()

    def _start_log_forwarding(self) -> None:
        if self._log_task is not None and not self._log_task.done():
            return
        self._log_task = asyncio.create_task(self._forward_output())

    async def _forward_output(self) -> None:
        """Forward the container's output to the workload logger."""
        try:
            async for line in self.runtime.attach(self.identity):
                workload_logger.info(line.decode(errors="replace").rstrip())
        except (RunnerError, OSError) as e:
            logger.warning(f"{self.identity}: output stream ended: {e}")
