"""Runners execute a plan."""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from dockhand.engine.actions import Action
from dockhand.providers.base import BaseClient


logger = logging.getLogger(__name__)


class Runner(ABC):
    """Executes a list of actions."""

    @abstractmethod
    async def run(self, actions: Sequence[Action]) -> None:
        """Run every action of the plan in order."""
        pass


class DryRunner(Runner):
    """Prints the actions instead of executing them."""

    def __init__(self):
        self.output: List[str] = []

    async def run(self, actions: Sequence[Action]) -> None:
        for action in actions:
            line = action.describe()
            self.output.append(line)
            logger.info(f"[DRY] Running: {line}")


class ClientRunner(Runner):
    """Executes actions against a container runtime client."""

    def __init__(self, client: BaseClient):
        self.client = client

    async def run(self, actions: Sequence[Action]) -> None:
        for action in actions:
            logger.debug(f"Running: {action.describe()}")
            await action.execute(self.client)
