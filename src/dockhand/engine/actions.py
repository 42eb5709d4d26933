"""Plan actions.

The plan is a tree of actions. Leaves call the client, steps group actions
that run one after another or concurrently. The set of action kinds is
closed: ``Action`` is a union discriminated by ``kind``.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated, ClassVar, Iterable, Iterator, List, Literal, Union

from pydantic import BaseModel, Field

from dockhand.engine.errors import ActionError
from dockhand.models.container import Container

if TYPE_CHECKING:
    from dockhand.providers.base import BaseClient


logger = logging.getLogger(__name__)


class NoAction(BaseModel):
    """Action that does nothing."""
    kind: Literal["noop"] = "noop"

    async def execute(self, client: "BaseClient") -> None:
        return None

    def describe(self, indent: int = 0) -> str:
        return "noop"

    def __str__(self) -> str:
        return self.describe()


class _ContainerAction(BaseModel):
    container: Container

    verb: ClassVar[str] = ""

    async def execute(self, client: "BaseClient") -> None:
        try:
            await self._call(client)
        except ActionError:
            raise
        except Exception as e:
            raise ActionError(self, e) from e

    async def _call(self, client: "BaseClient") -> None:
        raise NotImplementedError

    def describe(self, indent: int = 0) -> str:
        return f"{self.verb} '{self.container}'"

    def __str__(self) -> str:
        return self.describe()


class CreateContainer(_ContainerAction):
    """Create (and start) a container."""
    kind: Literal["create"] = "create"
    verb: ClassVar[str] = "Creating container"

    async def _call(self, client: "BaseClient") -> None:
        await client.create_container(self.container)


class RemoveContainer(_ContainerAction):
    """Remove an existing container."""
    kind: Literal["remove"] = "remove"
    verb: ClassVar[str] = "Removing container"

    async def _call(self, client: "BaseClient") -> None:
        await client.remove_container(self.container)


class EnsureContainer(_ContainerAction):
    """Make sure a container exists, creating it if absent."""
    kind: Literal["ensure"] = "ensure"
    verb: ClassVar[str] = "Ensuring container"

    async def _call(self, client: "BaseClient") -> None:
        await client.ensure_container(self.container)


class WaitForContainer(_ContainerAction):
    """Wait for a run-once container to finish successfully."""
    kind: Literal["wait"] = "wait"
    verb: ClassVar[str] = "Waiting for container"

    async def _call(self, client: "BaseClient") -> None:
        await client.wait_for_container(self.container)


class Step(BaseModel):
    """A group of actions executed in order or concurrently."""
    kind: Literal["step"] = "step"
    actions: List["Action"] = Field(default_factory=list)
    concurrent: bool = False

    async def execute(self, client: "BaseClient") -> None:
        if self.concurrent:
            await self._execute_concurrent(client)
        else:
            await self._execute_sequential(client)

    async def _execute_sequential(self, client: "BaseClient") -> None:
        for action in self.actions:
            await action.execute(client)

    async def _execute_concurrent(self, client: "BaseClient") -> None:
        # every sibling is awaited; the first failure in list order wins
        results = await asyncio.gather(
            *(action.execute(client) for action in self.actions),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if not errors:
            return
        for error in errors[1:]:
            logger.error(f"Concurrent action failed: {error}")
        raise errors[0]

    def describe(self, indent: int = 0) -> str:
        pad = "  " * (indent + 1)
        lines = [f"Running in concurrency mode = {self.concurrent}:"]
        for action in self.actions:
            lines.append(f"{pad}- {action.describe(indent + 1)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()


Action = Annotated[
    Union[NoAction, CreateContainer, RemoveContainer, EnsureContainer, WaitForContainer, Step],
    Field(discriminator="kind"),
]

Step.model_rebuild()


def new_step(concurrent: bool, actions: Iterable[Action]) -> Action:
    """Group actions, dropping no-ops.

    Returns NoAction for an empty group and the action itself for a group of
    one.
    """
    actions = [a for a in actions if not isinstance(a, NoAction)]
    if not actions:
        return NoAction()
    if len(actions) == 1:
        return actions[0]
    return Step(actions=actions, concurrent=concurrent)


def walk_actions(actions: Iterable[Action]) -> Iterator[Action]:
    """Yield every leaf action of the plan, depth first."""
    for action in actions:
        if isinstance(action, Step):
            yield from walk_actions(action.actions)
        else:
            yield action
