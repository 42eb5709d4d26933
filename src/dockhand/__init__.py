"""
Dockhand - declarative container composition.

Reads a manifest of containers, compares it with what runs on a Docker host
and executes the create/remove plan in dependency order.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from dockhand.models.config import DockhandConfig
from dockhand.models.container import Container, ContainerName, ContainerSpec

__all__ = [
    "DockhandConfig",
    "Container",
    "ContainerName",
    "ContainerSpec",
]
