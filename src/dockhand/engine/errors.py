"""Error types raised while planning and executing a reconciliation."""

from typing import List


class DockhandError(Exception):
    """Base class for all dockhand errors."""


class ManifestError(DockhandError):
    """The manifest cannot be read, rendered or validated."""


class DependencyError(DockhandError):
    """The dependency graph of the expected containers cannot be built."""


class DuplicateContainerError(DependencyError):
    """Two expected containers share one identity."""

    def __init__(self, container):
        self.container = container
        super().__init__(f"Container {container} is specified more than once")


class MissingInternalDependencyError(DependencyError):
    """A same-namespace dependency is not part of the manifest."""

    def __init__(self, container, dependency):
        self.container = container
        self.dependency = dependency
        super().__init__(f"Cannot resolve dependency {dependency} for {container}")


class MissingExternalDependencyError(DependencyError):
    """A dependency from another namespace is not running on the host."""

    def __init__(self, container, dependency):
        self.container = container
        self.dependency = dependency
        super().__init__(
            f"Cannot resolve external dependency {dependency} for {container}: "
            f"container does not exist"
        )


class CycleError(DependencyError):
    """Dependencies form a cycle, so no execution order exists."""

    def __init__(self, path: List):
        self.path = path
        chain = " -> ".join(str(c) for c in path)
        super().__init__(
            f"Dependencies have cycles, check links and volumes-from: {chain}"
        )


class ActionError(DockhandError):
    """A plan action failed while talking to the container runtime."""

    def __init__(self, action, cause: BaseException):
        self.action = action
        self.cause = cause
        super().__init__(f"{action.describe()} failed: {cause}")


class ClientError(DockhandError):
    """The container runtime rejected a request."""


class ContainerStateError(ClientError):
    """A container ended up in an unexpected state."""

    def __init__(self, container, exit_code: int, error: str = ""):
        self.container = container
        self.exit_code = exit_code
        message = f"Container {container} exited with code {exit_code}"
        if error:
            message = f"{message}, error: {error}"
        super().__init__(message)
