"""Pydantic models for containers, specifications and configuration."""

from dockhand.models.config import DockhandConfig, DockerConfig
from dockhand.models.container import (
    Container,
    ContainerName,
    ContainerSpec,
    ContainerState,
    PortBinding,
    RestartPolicy,
    Ulimit,
    same_identity,
)
from dockhand.models.compare import containers_equal, first_difference, specs_equal

__all__ = [
    "DockhandConfig",
    "DockerConfig",
    "Container",
    "ContainerName",
    "ContainerSpec",
    "ContainerState",
    "PortBinding",
    "RestartPolicy",
    "Ulimit",
    "same_identity",
    "containers_equal",
    "first_difference",
    "specs_equal",
]
