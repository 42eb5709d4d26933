"""Base client interface."""

from abc import ABC, abstractmethod
from typing import List

from dockhand.models.container import Container


class BaseClient(ABC):
    """Container runtime capability used by the plan actions.

    Implementations must tolerate concurrent calls: the actions of one batch
    are executed at the same time against a single client.
    """

    @abstractmethod
    async def list_containers(self, global_: bool = False) -> List[Container]:
        """Return the managed containers, or every container when global_ is set."""
        pass

    @abstractmethod
    async def fetch_image_ids(self, containers: List[Container]) -> None:
        """Set image_id of each container from the locally stored image.

        Containers whose image is not present locally keep image_id unset.
        """
        pass

    @abstractmethod
    async def create_container(self, container: Container) -> None:
        """Create a container and start it if it should be running."""
        pass

    @abstractmethod
    async def remove_container(self, container: Container) -> None:
        """Stop and remove a container."""
        pass

    @abstractmethod
    async def ensure_container(self, container: Container) -> None:
        """Create the container if absent, otherwise make sure it is up."""
        pass

    @abstractmethod
    async def wait_for_container(self, container: Container) -> None:
        """Wait for a run-once container to exit successfully."""
        pass
