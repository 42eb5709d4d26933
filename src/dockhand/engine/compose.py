"""High level reconciliation of a manifest against a container host."""

import asyncio
import logging
from typing import List, Optional

from dockhand.engine.actions import Action, CreateContainer, EnsureContainer, walk_actions
from dockhand.engine.diff import Diff
from dockhand.engine.errors import ClientError, ContainerStateError
from dockhand.engine.graph import find
from dockhand.engine.manifest import Manifest
from dockhand.engine.report import PlanReport
from dockhand.engine.runner import ClientRunner, DryRunner, Runner
from dockhand.models.container import Container
from dockhand.providers.base import BaseClient


logger = logging.getLogger(__name__)


class Compose:
    """Runs one manifest against one client.

    ``manifest`` may be None for ``recover``, which works from the managed
    containers found on the host. ``wait`` is the number of seconds to wait
    after a run before checking that the started containers are still up.
    """

    def __init__(
        self,
        manifest: Optional[Manifest],
        client: BaseClient,
        dry_run: bool = False,
        force: bool = False,
        remove: bool = False,
        wait: float = 0,
    ):
        self.manifest = manifest
        self.client = client
        self.dry_run = dry_run
        self.force = force
        self.remove = remove
        self.wait = wait
        self.expected: List[Container] = []
        self.plan: List[Action] = []
        self.runner: Optional[Runner] = None

    async def compute_plan(self) -> List[Action]:
        """Diff the manifest against the host without executing anything."""
        actual = await self.client.list_containers(global_=self.manifest.has_external_refs())

        # removing means expecting nothing
        expected: List[Container] = [] if self.remove else self.manifest.get_containers()

        for container in expected:
            existing = find(actual, container.name)
            if existing is not None:
                container.runtime_id = existing.runtime_id

        # a new local image under the same reference triggers a recreate
        await self.client.fetch_image_ids(expected)

        self.plan = Diff(self.manifest.namespace, force=self.force).diff(expected, actual)
        self.expected = expected
        return self.plan

    async def run(self) -> List[Action]:
        """Compute the plan and execute it."""
        await self.compute_plan()
        await self._execute()
        return self.plan

    async def recover(self) -> List[Action]:
        """Bring every managed container back to its desired state.

        Works across all namespaces, e.g. after a host reboot. Stopped
        containers that should be running are started in dependency order;
        nothing is recreated or removed.
        """
        managed = await self.client.list_containers()
        # external references may point at unmanaged containers
        actual = await self.client.list_containers(global_=True)

        self.expected = [container.model_copy(deep=True) for container in managed]
        self.plan = Diff("", recover=True).diff(self.expected, actual)
        await self._execute()
        return self.plan

    async def _execute(self) -> None:
        if self.dry_run:
            self.runner = DryRunner()
        else:
            self.runner = ClientRunner(self.client)

        await self.runner.run(self.plan)

        if self.wait > 0 and not self.dry_run:
            await self.check_launched()

        names = [container.name.full_name for container in self.expected]
        if names:
            logger.info(f"OK, containers are running: {', '.join(names)}")
        else:
            logger.info("Nothing is running")

    def launched(self) -> List[Container]:
        """Containers the last plan created or started that should keep running."""
        return [
            action.container
            for action in walk_actions(self.plan)
            if isinstance(action, (CreateContainer, EnsureContainer)) and action.container.spec.running
        ]

    async def check_launched(self) -> None:
        """Wait, then fail if a launched container is no longer running.

        Raises:
            ContainerStateError: A launched container has stopped
            ClientError: A launched container disappeared
        """
        launched = self.launched()
        if not launched:
            return

        logger.info(f"Waiting for {self.wait}s to ensure containers did not exit abnormally...")
        await asyncio.sleep(self.wait)

        current = await self.client.list_containers(global_=True)
        for container in launched:
            found = find(current, container.name)
            if found is None:
                raise ClientError(f"Container {container} does not exist")
            if found.state is not None and not found.state.running:
                raise ContainerStateError(container, found.state.exit_code, found.state.error)

    def write_plan(self, report: PlanReport) -> PlanReport:
        """Record the changes of the last plan in a report."""
        return report.fill(self.plan)
