"""Machine-readable summary of a run."""

from typing import Iterable, List

from pydantic import BaseModel, Field

from dockhand.engine.actions import Action, CreateContainer, RemoveContainer, walk_actions


class ReportContainer(BaseModel):
    id: str = ""
    name: str


class PlanReport(BaseModel):
    """Result of a run, printed with --json."""
    changed: bool = False
    failed: bool = False
    msg: str = ""
    removed: List[ReportContainer] = Field(default_factory=list)
    created: List[ReportContainer] = Field(default_factory=list)

    def fill(self, plan: Iterable[Action]) -> "PlanReport":
        """Record created and removed containers of a plan."""
        self.removed = []
        self.created = []
        for action in walk_actions(plan):
            if isinstance(action, RemoveContainer):
                self.removed.append(self._entry(action))
            elif isinstance(action, CreateContainer):
                self.created.append(self._entry(action))
        self.changed = bool(self.removed or self.created)
        return self

    @staticmethod
    def _entry(action) -> ReportContainer:
        container = action.container
        return ReportContainer(id=container.runtime_id or "", name=container.name.full_name)

    def error(self, exc: BaseException) -> "PlanReport":
        self.msg = str(exc)
        self.failed = True
        return self

    def success(self, msg: str) -> "PlanReport":
        self.msg = msg
        return self

    def to_json(self) -> str:
        return self.model_dump_json()
