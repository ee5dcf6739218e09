"""
Container manager for the supervised workload.

This module provides an abstraction over Docker operations for the single
container the runner manages. Every operation shells out to the `docker`
CLI and reports failures as RuntimeOperationError, with
ContainerNotFoundError for the distinguishable "no such container" case.
"""

import asyncio
import json
import logging
import re
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from runner_common.errors import ContainerNotFoundError, RuntimeOperationError
from runner_common.workload import HostConfig

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = ("No such container", "no such container")


@dataclass
class ContainerInfo:
    """
    Information about a Docker container.

    Represents a container as listed by the runtime; `status` is the raw
    runtime state string ("created", "running", "exited", ...).
    """

    name: str
    image: str
    status: str
    container_id: str = ""


class ContainerManager:
    """
    Manages the lifecycle of a named Docker container.

    The manager is stateless: the container name is passed to every call
    so the same instance can be shared by the state model and the
    transition engine.
    """

    def __init__(self, docker_binary: str = "docker"):
        """
        Initialize the container manager.

        Args:
            docker_binary: Path or name of the docker CLI executable
        """
        self.docker_binary = docker_binary

    async def _docker(self, *args: str) -> tuple[int, str, str]:
        """
        Run a docker CLI command.

        Returns:
            Tuple of (returncode, stdout, stderr)
        """
        logger.debug(f"Running: {self.docker_binary} {' '.join(args)}")
        process = await asyncio.create_subprocess_exec(
            self.docker_binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stdout, stderr = await process.communicate()
        return process.returncode or 0, stdout.decode(), stderr.decode()

    async def _run(
        self, operation: str, name: str, *args: str
    ) -> tuple[int, str, str]:
        """Run a docker command; a missing binary is a RuntimeOperationError."""
        try:
            return await self._docker(*args)
        except OSError as e:
            raise RuntimeOperationError(name, operation, str(e)) from e

    async def _container_op(self, operation: str, name: str, *args: str) -> str:
        """
        Run a docker command against a container and raise on failure.

        Args:
            operation: Operation name used in error reports
            name: Container name
            *args: Full docker argument list

        Returns:
            Command stdout

        Raises:
            ContainerNotFoundError: If docker reports the container is missing
            RuntimeOperationError: If the command fails for any other reason
        """
        returncode, stdout, stderr = await self._run(operation, name, *args)

        if returncode != 0:
            if any(marker in stderr for marker in NOT_FOUND_MARKERS):
                raise ContainerNotFoundError(name, operation, stderr)
            raise RuntimeOperationError(name, operation, stderr)

        return stdout

    async def list_containers(self, name: str) -> list[ContainerInfo]:
        """
        List all containers (running or not) whose name is exactly `name`.

        Args:
            name: Container name to filter on

        Returns:
            List of ContainerInfo objects, empty if none match

        Raises:
            RuntimeOperationError: If the listing fails
        """
        stdout = await self._container_op(
            "list",
            name,
            "ps",
            "-a",
            "--no-trunc",
            "--filter",
            f"name=^/?{re.escape(name)}$",
            "--format",
            "{{json .}}",
        )

        containers = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
                names = entry["Names"].split(",")
                info = ContainerInfo(
                    name=name,
                    image=entry["Image"],
                    status=entry["State"].lower(),
                    container_id=entry.get("ID", ""),
                )
            except (json.JSONDecodeError, KeyError, AttributeError) as e:
                raise RuntimeOperationError(
                    name, "list", f"Failed to parse container listing: {e}"
                ) from e

            # The name filter is a regex match; keep exact matches only
            if name in names:
                containers.append(info)

        return containers

    async def create(
        self,
        name: str,
        image: str,
        command: list[str],
        env: list[str],
        host_config: HostConfig,
        network: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """
        Create a container (but don't start it).

        Args:
            name: Container name
            image: Image reference ("name:version")
            command: Command line to run in the container
            env: Environment entries ("KEY=VALUE")
            host_config: Binds, devices, privilege and port settings
            network: Network to attach to, defaults to host_config.network_mode
            ip_address: Fixed IPv4 address on that network

        Returns:
            The new container ID
        """
        args = ["create", "--name", name]

        for bind in host_config.binds:
            args.extend(["--volume", bind])
        if host_config.privileged:
            args.append("--privileged")
        for device in host_config.devices:
            args.extend(["--device", device.to_cli()])
        for rule in host_config.device_cgroup_rules:
            args.extend(["--device-cgroup-rule", rule])

        args.extend(["--network", network or host_config.network_mode])
        if ip_address:
            args.extend(["--ip", ip_address])

        for binding in host_config.port_bindings:
            args.extend(["--publish", binding.to_cli()])
        for entry in env:
            args.extend(["--env", entry])

        args.append(image)
        args.extend(command)

        stdout = await self._container_op("create", name, *args)
        return stdout.strip()

    async def start(self, name: str) -> None:
        """Start a created or exited container."""
        await self._container_op("start", name, "start", name)

    async def stop(self, name: str, grace_period: int = 1) -> None:
        """
        Stop a running container.

        Args:
            name: Container name
            grace_period: Seconds to wait before killing the container
        """
        await self._container_op(
            "stop", name, "stop", "--time", str(grace_period), name
        )

    async def pause(self, name: str) -> None:
        """Pause all processes in a running container."""
        await self._container_op("pause", name, "pause", name)

    async def unpause(self, name: str) -> None:
        """Resume a paused container."""
        await self._container_op("unpause", name, "unpause", name)

    async def remove(self, name: str, force: bool = True, volumes: bool = True) -> None:
        """
        Remove a container.

        Args:
            name: Container name
            force: If True, force removal even if running
            volumes: If True, also remove anonymous volumes
        """
        args = ["rm"]
        if force:
            args.append("--force")
        if volumes:
            args.append("--volumes")
        args.append(name)

        await self._container_op("remove", name, *args)

    async def image_exists(self, image: str) -> bool:
        """Check whether the image is available locally."""
        returncode, _, _ = await self._run(
            "image-inspect", image, "image", "inspect", image
        )
        return returncode == 0

    async def pull_image(self, image: str, platform: str | None = None) -> None:
        """
        Pull an image from its registry.

        Raises:
            RuntimeOperationError: If the pull fails
        """
        args = ["pull"]
        if platform:
            args.extend(["--platform", platform])
        args.append(image)

        stdout = await self._container_op("pull", image, *args)
        for line in stdout.splitlines():
            logger.info(line)

    async def ensure_network(self, name: str, subnet: str) -> str:
        """
        Get or create a bridge network.

        Args:
            name: Network name, also used as the host bridge name
            subnet: Subnet in CIDR notation

        Returns:
            Network ID
        """
        returncode, stdout, _ = await self._run(
            "network-inspect", name, "network", "inspect", name, "--format", "{{.Id}}"
        )
        if returncode == 0 and stdout.strip():
            return stdout.strip()

        stdout = await self._container_op(
            "network-create",
            name,
            "network",
            "create",
            "--driver",
            "bridge",
            "--subnet",
            subnet,
            "--opt",
            f"com.docker.network.bridge.name={name}",
            name,
        )
        network_id = stdout.strip()
        logger.info(f"Created network {name}: {network_id}")
        return network_id

    async def attach(
        self, name: str, follow: bool = True
    ) -> AsyncGenerator[bytes, None]:
        """
        Stream the container's combined stdout/stderr.

        Args:
            name: Container name
            follow: If True, stream continuously. If False, return existing output.

        Yields:
            Output lines as raw bytes
        """
        args = [self.docker_binary, "logs"]
        if follow:
            args.append("--follow")
        args.append(name)

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )

        assert process.stdout is not None

        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                yield line
        finally:
            # Clean up process if still running
            if process.returncode is None:
                process.terminate()
                await process.wait()
