"""Container runtime clients for dockhand."""

from dockhand.providers.base import BaseClient
from dockhand.providers.docker import DockerClient

__all__ = [
    "BaseClient",
    "DockerClient",
]
