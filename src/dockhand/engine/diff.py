"""Comparison of expected and actual container sets.

``expected`` is the list of containers from a manifest, ``actual`` the list of
containers present on the host. ``Diff.diff`` returns the actions that
transition the actual state into the expected one.
"""

import logging
from typing import List, Sequence

from dockhand.engine.actions import (
    Action,
    CreateContainer,
    EnsureContainer,
    NoAction,
    RemoveContainer,
    Step,
    WaitForContainer,
    new_step,
)
from dockhand.engine.graph import Dependency, DependencyGraph, find
from dockhand.models.compare import containers_equal
from dockhand.models.container import Container


logger = logging.getLogger(__name__)


def list_containers_to_remove(
    namespace: str,
    expected: Sequence[Container],
    actual: Sequence[Container],
) -> List[Action]:
    """Return remove actions for containers of the namespace that are not expected."""
    actions: List[Action] = []
    for container in actual:
        if container.name.namespace != namespace:
            continue
        if find(expected, container.name) is None:
            actions.append(RemoveContainer(container=container))
    return actions


class Diff:
    """Computes the execution plan for one namespace.

    In recover mode containers that differ from their desired state are
    ensured instead of recreated, and nothing is removed.
    """

    def __init__(self, namespace: str, force: bool = False, recover: bool = False):
        self.namespace = namespace
        self.force = force
        self.recover = recover

    def diff(self, expected: Sequence[Container], actual: Sequence[Container]) -> List[Action]:
        """Return the plan that converges actual to expected.

        Orphan removals come first, followed by one entry per dependency
        batch. Dependency and cycle errors are raised before anything is
        planned.
        """
        graph = DependencyGraph.build(self.namespace, expected, actual)
        graph.check_cycles()
        batches = graph.batches()

        plan: List[Action] = []
        if not self.recover:
            plan = list_containers_to_remove(self.namespace, expected, actual)
        plan.extend(self.build_execution_plan(graph, batches, actual))

        logger.debug(f"Computed plan of {len(plan)} steps for namespace '{self.namespace}'")
        return plan

    def build_execution_plan(
        self,
        graph: DependencyGraph,
        batches: List[List[Dependency]],
        actual: Sequence[Container],
    ) -> List[Action]:
        plan: List[Action] = []
        for batch in batches:
            actions = [self._reconcile(graph, dependency, actual) for dependency in batch]
            # containers of one batch do not depend on each other
            plan.append(new_step(True, actions))
        return plan

    def _reconcile(
        self,
        graph: DependencyGraph,
        dependency: Dependency,
        actual: Sequence[Container],
    ) -> Action:
        if dependency.external:
            return EnsureContainer(container=dependency.container)

        expected = dependency.container
        action = self._container_action(expected, actual)

        waits = [
            WaitForContainer(container=dep.container)
            for dep in graph.dependencies_of(expected)
            if dep.wait
        ]
        if waits:
            return new_step(False, [new_step(True, waits), action])
        return action

    def _container_action(self, expected: Container, actual: Sequence[Container]) -> Action:
        existing = find(actual, expected.name)
        if existing is None:
            return CreateContainer(container=expected)

        if not self.force and containers_equal(expected, existing):
            return NoAction()

        if self.recover:
            return EnsureContainer(container=expected)

        # a recreate never overlaps with its own teardown
        return Step(
            actions=[RemoveContainer(container=existing), CreateContainer(container=expected)],
            concurrent=False,
        )
