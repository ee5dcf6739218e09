"""
Shared fixtures for runner unit tests.

FakeRuntime is an in-memory stand-in for ContainerManager. It enforces the
same preconditions Docker does (a name can only be created once, only a
running container can be paused, ...), so a wrong operation order fails
the same way it would against a real daemon.
"""

import pytest

from runner_common.errors import ContainerNotFoundError, RuntimeOperationError
from runner_common.workload import WorkloadSpec
from runner_controller.container_manager import ContainerInfo


class FakeRuntime:
    """In-memory container runtime recording every lifecycle operation."""

    def __init__(self) -> None:
        self.containers: list[ContainerInfo] = []
        self.operations: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.images: set[str] = set()
        self.pulled: list[str] = []
        self.networks: dict[str, str] = {}
        self.created_with: list[dict] = []
        self.list_calls = 0

    def set_container(self, name: str, image: str, status: str) -> None:
        self.containers = [ContainerInfo(name=name, image=image, status=status)]

    def status_of(self, name: str) -> str | None:
        for c in self.containers:
            if c.name == name:
                return c.status
        return None

    def _find(self, name: str, operation: str) -> ContainerInfo:
        for c in self.containers:
            if c.name == name:
                return c
        raise ContainerNotFoundError(name, operation, "No such container")

    def _record(self, operation: str, name: str) -> None:
        self.operations.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    async def list_containers(self, name: str) -> list[ContainerInfo]:
        self.list_calls += 1
        if "list" in self.failures:
            raise self.failures["list"]
        return [c for c in self.containers if c.name == name]

    async def create(
        self, name, image, command, env, host_config, network=None, ip_address=None
    ) -> str:
        self._record("create", name)
        if any(c.name == name for c in self.containers):
            raise RuntimeOperationError(name, "create", "name is already in use")
        self.created_with.append(
            {
                "image": image,
                "command": command,
                "env": env,
                "host_config": host_config,
                "network": network,
                "ip_address": ip_address,
            }
        )
        self.containers.append(ContainerInfo(name=name, image=image, status="created"))
        return "fake-id"

    async def start(self, name: str) -> None:
        self._record("start", name)
        container = self._find(name, "start")
        if container.status not in ("created", "exited", "running"):
            detail = f"cannot start {container.status}"
            raise RuntimeOperationError(name, "start", detail)
        container.status = "running"

    async def stop(self, name: str, grace_period: int = 1) -> None:
        self._record("stop", name)
        container = self._find(name, "stop")
        container.status = "exited"

    async def pause(self, name: str) -> None:
        self._record("pause", name)
        container = self._find(name, "pause")
        if container.status not in ("running", "restarting"):
            raise RuntimeOperationError(name, "pause", f"{name} is not running")
        container.status = "paused"

    async def unpause(self, name: str) -> None:
        self._record("unpause", name)
        container = self._find(name, "unpause")
        if container.status != "paused":
            raise RuntimeOperationError(name, "unpause", f"{name} is not paused")
        container.status = "running"

    async def remove(self, name: str, force: bool = True, volumes: bool = True) -> None:
        self._record("remove", name)
        container = self._find(name, "remove")
        self.containers.remove(container)

    async def image_exists(self, image: str) -> bool:
        return image in self.images

    async def pull_image(self, image: str, platform: str | None = None) -> None:
        self.pulled.append(image)
        self.images.add(image)

    async def ensure_network(self, name: str, subnet: str) -> str:
        return self.networks.setdefault(name, f"net-{name}")

    async def attach(self, name: str, follow: bool = True):
        for line in (b"hello\n", b"world\n"):
            yield line


@pytest.fixture
def spec():
    """A minimal workload with a long drift interval."""
    return WorkloadSpec.parse(
        '{"name": "cache", "app_type": "sys", "image": "redis", "version": "7",'
        ' "cmd": "redis-server --save", "monitor_interval": 60}'
    )


@pytest.fixture
def fake_runtime(spec):
    """An empty fake runtime that already has the workload image."""
    runtime = FakeRuntime()
    runtime.images.add(spec.image_ref)
    return runtime
