"""Shared fixtures."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from dockhand.models.container import Container, ContainerName, ContainerSpec, ContainerState
from dockhand.providers.base import BaseClient


def make_container(name: str, namespace: str = "app", running=None, **spec) -> Container:
    """Build a container; running=True/False attaches an observed state."""
    spec.setdefault("image", "busybox:latest")
    container = Container(
        name=ContainerName(namespace=namespace, name=name),
        spec=ContainerSpec(**spec),
    )
    if running is not None:
        container.state = ContainerState(running=running)
    return container


@pytest.fixture
def container():
    """Container factory."""
    return make_container


@pytest.fixture
def mock_client():
    """Client with every capability mocked."""
    client = MagicMock(spec=BaseClient)
    client.list_containers = AsyncMock(return_value=[])
    client.fetch_image_ids = AsyncMock()
    client.create_container = AsyncMock()
    client.remove_container = AsyncMock()
    client.ensure_container = AsyncMock()
    client.wait_for_container = AsyncMock()
    return client
