"""Dependency graph of the expected containers.

Builds the graph from links, volumes-from, wait-for and network-container
references, rejects cycles and layers the graph into batches of mutually
independent containers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from dockhand.engine.errors import (
    CycleError,
    DuplicateContainerError,
    MissingExternalDependencyError,
    MissingInternalDependencyError,
)
from dockhand.models.container import Container, ContainerName


logger = logging.getLogger(__name__)

Key = Tuple[str, str]


@dataclass
class Dependency:
    """A resolved dependency.

    Attributes:
        container: The container depended upon
        external: True if resolved against the running containers of another
            namespace, False if it is created within this run
        wait: True if the dependent has to wait for it to finish
    """
    container: Container
    external: bool = False
    wait: bool = False

    @property
    def key(self) -> Key:
        return self.container.name.key

    def __str__(self) -> str:
        kind = "external" if self.external else "internal"
        return f"{self.container} ({kind})"


def find(containers: Sequence[Container], name: ContainerName) -> Optional[Container]:
    """Return the container with the given identity, if any."""
    for container in containers:
        if container.name.is_same(name):
            return container
    return None


def resolve_dependencies(
    namespace: str,
    expected: Sequence[Container],
    actual: Sequence[Container],
    target: Container,
) -> List[Dependency]:
    """Resolve every name the target container depends on."""
    spec = target.spec
    to_resolve: Dict[Key, Tuple[ContainerName, Dependency]] = {}

    def add(name: ContainerName, wait: bool = False):
        name = name.with_namespace(namespace)
        if name.key in to_resolve:
            to_resolve[name.key][1].wait |= wait
            return
        # container is filled in below
        dependency = Dependency(container=target, external=name.namespace != namespace, wait=wait)
        to_resolve[name.key] = (name, dependency)

    for name in spec.volumes_from:
        add(name)
    for name in spec.wait_for:
        add(name, wait=True)
    for name in spec.links:
        add(name)
    if spec.net_container is not None:
        add(spec.net_container)

    resolved = []
    for name, dependency in to_resolve.values():
        scope = actual if dependency.external else expected
        container = find(scope, name)
        if container is None:
            if dependency.external:
                raise MissingExternalDependencyError(target, name)
            raise MissingInternalDependencyError(target, name)
        dependency.container = container
        resolved.append(dependency)

    return resolved


class DependencyGraph:
    """Dependency graph for one reconciliation pass.

    Nodes are keyed by identity (namespace, name). Expected containers are
    internal nodes; the targets of external dependencies are added as nodes
    without dependencies of their own.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace
        self.nodes: Dict[Key, Dependency] = {}
        self.dependencies: Dict[Key, List[Dependency]] = {}

    @classmethod
    def build(
        cls,
        namespace: str,
        expected: Sequence[Container],
        actual: Sequence[Container],
    ) -> "DependencyGraph":
        """Resolve the dependencies of every expected container.

        Raises:
            DuplicateContainerError: Two expected containers share identity
            MissingInternalDependencyError: Same-namespace dependency not expected
            MissingExternalDependencyError: Cross-namespace dependency not running
        """
        graph = cls(namespace)

        for container in expected:
            key = container.name.key
            if key in graph.nodes:
                raise DuplicateContainerError(container)
            graph.nodes[key] = Dependency(container=container)

        for container in expected:
            deps = resolve_dependencies(namespace, expected, actual, container)
            graph.dependencies[container.name.key] = deps
            for dep in deps:
                if dep.external and dep.key not in graph.nodes:
                    graph.nodes[dep.key] = Dependency(container=dep.container, external=True)
                    graph.dependencies[dep.key] = []

        logger.debug(f"Built dependency graph with {len(graph.nodes)} nodes for namespace '{namespace}'")
        return graph

    def dependencies_of(self, container: Container) -> List[Dependency]:
        return self.dependencies.get(container.name.key, [])

    def _sorted_keys(self, keys) -> List[Key]:
        return sorted(keys, key=lambda k: str(self.nodes[k].container))

    def check_cycles(self) -> None:
        """Raise CycleError if any dependency path revisits a node."""
        done: Set[Key] = set()

        for start in self._sorted_keys(self.nodes):
            if start in done:
                continue

            path: List[Key] = [start]
            on_path: Set[Key] = {start}
            stack = [iter(self.dependencies.get(start, []))]

            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    finished = path.pop()
                    on_path.discard(finished)
                    done.add(finished)
                    continue

                if dep.key in on_path:
                    cycle = path[path.index(dep.key):] + [dep.key]
                    raise CycleError([self.nodes[k].container for k in cycle])
                if dep.key in done:
                    continue

                path.append(dep.key)
                on_path.add(dep.key)
                stack.append(iter(self.dependencies.get(dep.key, [])))

    def batches(self) -> List[List[Dependency]]:
        """Layer the graph into batches with Kahn's algorithm.

        Every node of a batch depends only on nodes of earlier batches, so a
        batch can be processed concurrently once the previous one finished.
        Batches are sorted by identity string.
        """
        pending: Dict[Key, Set[Key]] = {
            key: {dep.key for dep in self.dependencies.get(key, [])}
            for key in self.nodes
        }
        dependents: Dict[Key, List[Key]] = {key: [] for key in self.nodes}
        for key, deps in pending.items():
            for dep_key in deps:
                dependents[dep_key].append(key)

        result: List[List[Dependency]] = []
        ready = self._sorted_keys(key for key, deps in pending.items() if not deps)

        while ready:
            result.append([self.nodes[key] for key in ready])

            unblocked = []
            for key in ready:
                del pending[key]
                for dependent in dependents[key]:
                    pending[dependent].discard(key)
                    if not pending[dependent]:
                        unblocked.append(dependent)
            ready = self._sorted_keys(unblocked)

        if pending:
            raise CycleError([self.nodes[key].container for key in self._sorted_keys(pending)])

        return result
