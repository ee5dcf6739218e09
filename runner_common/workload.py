"""
Workload descriptor parsing and validation.

A WorkloadSpec is the immutable, validated description of the single
container this runner supervises. It is parsed from a JSON document and
exposes the derived values the runtime needs (container name, image
reference, argv, environment and host configuration).
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import InvalidConfiguration

DEFAULT_NETWORK_NAME = "virt-network0"
DEFAULT_NETWORK_SUBNET = "192.168.10.0/24"
REDIS_SERVER_IP = "192.168.10.10"

WAYLAND_RUNTIME_DIR = "/run/user/0"
DRM_DEVICES = ("/dev/dri/card0", "/dev/dri/card1")
DRM_CGROUP_RULE = "c 226:* rmw"  # major number of /dev/dri/cardX

APP_TYPES = ("sys", "user")
NETWORK_MODES = ("none", "host", "bridge-managed")

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_HOST_PORT_PATTERN = re.compile(r"^([0-9.]+):([0-9]+)$")


@dataclass(frozen=True)
class PortBinding:
    """One host address a container port is published on."""

    container_port: str  # e.g. "6379/tcp" or "8080"
    host_ip: str
    host_port: str

    def to_cli(self) -> str:
        """Format as a `docker create --publish` value."""
        return f"{self.host_ip}:{self.host_port}:{self.container_port}"


@dataclass(frozen=True)
class DeviceMapping:
    """A host device exposed inside the container."""

    path_on_host: str
    path_in_container: str
    cgroup_permissions: str = "rwm"

    def to_cli(self) -> str:
        """Format as a `docker create --device` value."""
        return f"{self.path_on_host}:{self.path_in_container}:{self.cgroup_permissions}"


@dataclass(frozen=True)
class HostConfig:
    """Host-side settings applied when the container is created."""

    binds: tuple[str, ...] = ()
    privileged: bool = False
    devices: tuple[DeviceMapping, ...] = ()
    device_cgroup_rules: tuple[str, ...] = ()
    network_mode: str = "none"
    port_bindings: tuple[PortBinding, ...] = ()


@dataclass(frozen=True)
class WorkloadSpec:
    """
    Validated description of the managed workload.

    Use WorkloadSpec.parse() or WorkloadSpec.load() rather than calling the
    constructor directly; they apply defaults and validation.
    """

    name: str
    image: str
    app_type: str = "user"
    version: str = "latest"
    privilege: bool = False
    network: str = "none"
    cmd: str = ""
    binds: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    environments: tuple[str, ...] = ()
    port_bindings: tuple[PortBinding, ...] = ()
    monitor_interval: float = 1.0

    @property
    def identity(self) -> str:
        """Unique instance key, used verbatim as the container name."""
        return f"{self.app_type}.{self.name}"

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.version}"

    @property
    def argv(self) -> list[str]:
        return self.cmd.split(" ") if self.cmd else []

    @property
    def gui(self) -> bool:
        return "gui" in self.features

    @property
    def wayland(self) -> bool:
        return "wayland" in self.features

    @property
    def redis_server(self) -> bool:
        return "redis-server" in self.features

    @property
    def uses_managed_network(self) -> bool:
        return self.network == "bridge-managed"

    def environment(self) -> list[str]:
        """Environment passed to the container, including runner-provided entries."""
        env = list(self.environments)
        env.append(f"SYSTEM_REDIS_SERVER_IP={REDIS_SERVER_IP}")
        if self.wayland:
            env.append(f"XDG_RUNTIME_DIR={WAYLAND_RUNTIME_DIR}")
        return env

    def host_config(self) -> HostConfig:
        """
        Derive the host configuration for container creation.

        A privileged container sees every device already, so DRM devices are
        only mapped for unprivileged GUI workloads.
        """
        binds = list(self.binds)
        if self.wayland:
            binds.append(f"{WAYLAND_RUNTIME_DIR}:{WAYLAND_RUNTIME_DIR}:rw")

        devices: list[DeviceMapping] = []
        cgroup_rules: list[str] = []
        if self.gui and not self.privilege:
            devices = [DeviceMapping(d, d) for d in DRM_DEVICES]
            cgroup_rules = [DRM_CGROUP_RULE]

        return HostConfig(
            binds=tuple(binds),
            privileged=self.privilege,
            devices=tuple(devices),
            device_cgroup_rules=tuple(cgroup_rules),
            network_mode=self.network,
            port_bindings=self.port_bindings,
        )

    @classmethod
    def parse(
        cls, json_text: str, monitor_interval: float | None = None
    ) -> "WorkloadSpec":
        """
        Parse and validate a JSON workload descriptor.

        Args:
            json_text: JSON document describing the workload
            monitor_interval: Optional override for the drift-check interval

        Returns:
            Validated WorkloadSpec

        Raises:
            InvalidConfiguration: If the document is malformed or a field is invalid
        """
        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Failed to parse workload JSON: {e}") from e

        if not isinstance(data, dict):
            raise InvalidConfiguration("Workload descriptor must be a JSON object")

        return cls.from_dict(data, monitor_interval=monitor_interval)

    @classmethod
    def load(
        cls, path: str | Path, monitor_interval: float | None = None
    ) -> "WorkloadSpec":
        """Read a descriptor file and parse it."""
        try:
            json_text = Path(path).read_text()
        except OSError as e:
            raise InvalidConfiguration(f"Cannot read workload file {path}: {e}") from e
        return cls.parse(json_text, monitor_interval=monitor_interval)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], monitor_interval: float | None = None
    ) -> "WorkloadSpec":
        """Build a WorkloadSpec from an already-decoded descriptor."""
        name = _require_str(data, "name")
        if not _NAME_PATTERN.match(name):
            raise InvalidConfiguration(f"Invalid workload name: {name!r}")

        image = _require_str(data, "image")
        version = _optional_str(data, "version", "latest")

        app_type = _optional_str(data, "app_type", "user").lower()
        if app_type not in APP_TYPES:
            raise InvalidConfiguration(
                f"Invalid app_type {app_type!r}, expected one of {APP_TYPES}"
            )

        network = _optional_str(data, "network", "none")
        if network not in NETWORK_MODES and not _is_container_network(network):
            raise InvalidConfiguration(
                f"Invalid network {network!r}, expected one of "
                f"{NETWORK_MODES} or 'container:<name>'"
            )

        privilege = data.get("privilege", False)
        if not isinstance(privilege, bool):
            raise InvalidConfiguration("Field 'privilege' must be a boolean")

        if monitor_interval is None:
            monitor_interval = data.get("monitor_interval")
        if monitor_interval is None:
            monitor_interval = 1.0
        if (
            isinstance(monitor_interval, bool)
            or not isinstance(monitor_interval, (int, float))
            or monitor_interval <= 0
        ):
            raise InvalidConfiguration(
                f"Invalid monitor_interval {monitor_interval!r}, "
                "must be a positive number"
            )

        return cls(
            name=name,
            image=image,
            app_type=app_type,
            version=version,
            privilege=privilege,
            network=network,
            cmd=_optional_str(data, "cmd", ""),
            binds=_str_list(data, "binds"),
            features=_str_list(data, "features"),
            environments=_str_list(data, "environments"),
            port_bindings=_parse_port_bindings(data.get("port_bindings")),
            monitor_interval=float(monitor_interval),
        )


def _is_container_network(network: str) -> bool:
    prefix, _, target = network.partition(":")
    return prefix == "container" and bool(target)


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidConfiguration(f"Field {key!r} is required and must be a string")
    return value


def _optional_str(data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidConfiguration(f"Field {key!r} must be a string")
    return value


def _str_list(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidConfiguration(f"Field {key!r} must be a list of strings")
    return tuple(value)


def _parse_port_bindings(value: Any) -> tuple[PortBinding, ...]:
    """
    Parse ``[{"port": "80/tcp", "host": ["0.0.0.0:8080"]}]`` entries.

    Raises:
        InvalidConfiguration: If an entry is malformed or a host address
            does not look like ``ip:port``
    """
    if value is None:
        return ()
    if not isinstance(value, list):
        raise InvalidConfiguration("Field 'port_bindings' must be a list")

    bindings = []
    for entry in value:
        if not isinstance(entry, dict):
            raise InvalidConfiguration("Each port binding must be an object")
        port = entry.get("port")
        hosts = entry.get("host", [])
        if not isinstance(port, str) or not port:
            raise InvalidConfiguration("Port binding is missing 'port'")
        if not isinstance(hosts, list):
            raise InvalidConfiguration(f"Port binding {port}: 'host' must be a list")

        for host in hosts:
            match = _HOST_PORT_PATTERN.match(host) if isinstance(host, str) else None
            if match is None:
                raise InvalidConfiguration(f"Invalid host network port: {host}")
            bindings.append(
                PortBinding(
                    container_port=port,
                    host_ip=match.group(1),
                    host_port=match.group(2),
                )
            )

    return tuple(bindings)
