"""Container specification models."""

import re
import shlex
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


MEMORY_UNITS = {"b": 1, "k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}
MEMORY_RE = re.compile(r"^(\d+)\s*([bkmgBKMG]?)$")


class ContainerName(BaseModel):
    """Container identity.

    Two names denote the same container when namespace and name match. The
    alias is only used as the hostname of a link.
    """
    model_config = ConfigDict(frozen=True)

    namespace: str = ""
    name: str
    alias: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return cls._split(value)
        return value

    @staticmethod
    def _split(text: str) -> Dict[str, str]:
        # format: name | namespace.name | name:alias | namespace.name:alias
        text = text.strip().lstrip("/")
        full_name, _, alias = text.partition(":")
        namespace, _, name = full_name.rpartition(".")
        return {
            "namespace": namespace,
            "name": name,
            "alias": alias.replace("_", "-"),
        }

    @classmethod
    def parse(cls, text: str, namespace: str = "") -> "ContainerName":
        """Parse a container reference, defaulting the namespace."""
        return cls(**cls._split(text)).with_namespace(namespace)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.namespace, self.name)

    @property
    def full_name(self) -> str:
        """Name without alias, as used by the container runtime."""
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name

    @property
    def link_alias(self) -> str:
        return self.alias or self.name.replace("_", "-")

    def is_same(self, other: "ContainerName") -> bool:
        """Return True if both names refer to the same container."""
        return self.namespace == other.namespace and self.name == other.name

    def with_namespace(self, namespace: str) -> "ContainerName":
        """Return a copy with the namespace filled in if it was empty."""
        if self.namespace or not namespace:
            return self
        return self.model_copy(update={"namespace": namespace})

    def __str__(self) -> str:
        if self.alias:
            return f"{self.full_name}:{self.alias}"
        return self.full_name


def same_identity(a: ContainerName, b: ContainerName) -> bool:
    """Namespace and name equality, alias ignored."""
    return a.is_same(b)


def parse_memory(value: Any) -> Optional[int]:
    """Convert '512m' style sizes into bytes."""
    if value is None or isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    match = MEMORY_RE.match(text)
    if not match:
        raise ValueError(f"Invalid memory value: {value}")
    number, unit = match.groups()
    return int(number) * MEMORY_UNITS[(unit or "b").lower()]


def _map_value(value: Any) -> str:
    # YAML booleans are written the way the manifest spells them
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RestartPolicy(BaseModel):
    """Restart policy, e.g. 'always' or 'on-failure:5'."""
    name: str = ""
    maximum_retry_count: int = 0

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            name, _, count = value.partition(":")
            return {"name": name, "maximum_retry_count": int(count) if count else 0}
        return value

    def __str__(self) -> str:
        if self.maximum_retry_count:
            return f"{self.name}:{self.maximum_retry_count}"
        return self.name


class Ulimit(BaseModel):
    """Resource limit."""
    name: str
    soft: int = 0
    hard: int = 0


class PortBinding(BaseModel):
    """Port binding.

    format: ip:hostPort:containerPort | ip::containerPort |
    hostPort:containerPort | containerPort, each with an optional /proto
    """
    port: str
    host_ip: str = ""
    host_port: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, value: Any) -> Any:
        if isinstance(value, int):
            value = str(value)
        if not isinstance(value, str):
            return value

        parts = value.split(":")
        if len(parts) == 1:
            host_ip, host_port, port = "", "", parts[0]
        elif len(parts) == 2:
            host_ip, (host_port, port) = "", parts
        elif len(parts) == 3:
            host_ip, host_port, port = parts
        else:
            raise ValueError(f"Invalid port binding: {value}")

        if "/" not in port:
            port = f"{port}/tcp"
        return {"port": port, "host_ip": host_ip, "host_port": host_port}

    def __str__(self) -> str:
        if self.host_ip:
            return f"{self.host_ip}:{self.host_port}:{self.port}"
        if self.host_port:
            return f"{self.host_port}:{self.port}"
        return self.port


class ContainerSpec(BaseModel):
    """Container specification."""
    model_config = ConfigDict(extra="ignore")

    extends: Optional[str] = None
    image: Optional[str] = None
    net: Optional[str] = Field(None, description="bridge | none | host | container:<name>")
    pid: Optional[str] = None
    state: Optional[Literal["running", "created", "ran"]] = None
    dns: List[str] = Field(default_factory=list)
    add_host: List[str] = Field(default_factory=list)
    restart: Optional[RestartPolicy] = None
    memory: Optional[int] = None
    memory_swap: Optional[int] = None
    cpu_shares: Optional[int] = None
    cpuset_cpus: Optional[str] = None
    oom_kill_disable: Optional[bool] = None
    ulimits: List[Ulimit] = Field(default_factory=list)
    privileged: Optional[bool] = None
    cmd: List[str] = Field(default_factory=list)
    entrypoint: List[str] = Field(default_factory=list)
    expose: List[str] = Field(default_factory=list)
    ports: List[PortBinding] = Field(default_factory=list)
    publish_all_ports: Optional[bool] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    env: Dict[str, str] = Field(default_factory=dict)
    volumes_from: List[ContainerName] = Field(default_factory=list)
    volumes: List[str] = Field(default_factory=list)
    links: List[ContainerName] = Field(default_factory=list)
    wait_for: List[ContainerName] = Field(default_factory=list)
    kill_timeout: Optional[int] = None
    hostname: Optional[str] = None
    domainname: Optional[str] = None
    user: Optional[str] = None
    workdir: Optional[str] = None
    network_disabled: Optional[bool] = None
    keep_volumes: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # 'links:' with no value in YAML means the same as no links at all
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("memory", "memory_swap", mode="before")
    @classmethod
    def validate_memory(cls, v):
        """Accept human readable sizes."""
        return parse_memory(v)

    @field_validator("cmd", "entrypoint", mode="before")
    @classmethod
    def validate_command(cls, v):
        """Split shell-style command strings into argv."""
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator(
        "dns", "add_host", "expose", "volumes", "links", "volumes_from", "wait_for", mode="before"
    )
    @classmethod
    def validate_string_list(cls, v):
        """Allow a single string where a list is expected."""
        if isinstance(v, (str, int)):
            v = [v]
        if isinstance(v, (list, tuple)):
            # YAML turns 'expose: [80]' into integers
            return [str(item) if isinstance(item, int) else item for item in v]
        return v

    @field_validator("labels", "env", mode="before")
    @classmethod
    def validate_string_map(cls, v):
        """Accept KEY=VALUE lists and stringify scalar values."""
        if v is None:
            return {}
        if isinstance(v, (list, tuple)):
            pairs = {}
            for item in v:
                key, _, value = str(item).partition("=")
                pairs[key] = value
            return pairs
        return {str(key): _map_value(value) for key, value in v.items()}

    @property
    def net_container(self) -> Optional[ContainerName]:
        """Container whose network namespace is shared, if any."""
        if self.net and self.net.startswith("container:"):
            return ContainerName.parse(self.net[len("container:"):])
        return None

    @property
    def running(self) -> bool:
        """Whether the container should be kept running."""
        return self.state in (None, "running")

    def with_namespace(self, namespace: str) -> "ContainerSpec":
        """Return a copy with every dependency name defaulted to namespace."""
        update: Dict[str, Any] = {
            "links": [n.with_namespace(namespace) for n in self.links],
            "volumes_from": [n.with_namespace(namespace) for n in self.volumes_from],
            "wait_for": [n.with_namespace(namespace) for n in self.wait_for],
        }
        net_container = self.net_container
        if net_container is not None:
            update["net"] = f"container:{net_container.with_namespace(namespace).full_name}"
        return self.model_copy(update=update)


class ContainerState(BaseModel):
    """Observed runtime state of a container."""
    running: bool = False
    exit_code: int = 0
    error: str = ""


class Container(BaseModel):
    """A single container, either expected (from a manifest) or actual."""
    name: ContainerName
    spec: ContainerSpec = Field(default_factory=ContainerSpec)
    runtime_id: Optional[str] = None
    image_id: Optional[str] = None
    state: Optional[ContainerState] = None

    def is_same(self, other: "Container") -> bool:
        return self.name.is_same(other.name)

    def __str__(self) -> str:
        return self.name.full_name
