"""
Models describing the progress of update batches and version-check sweeps.
"""
from typing import Dict, Iterable, Optional, Set
from enum import Enum
from pydantic import BaseModel


class UpdateMode(str, Enum):
    """
    How a batch treats the selected projects.
    """
    PULL = "pull"
    RESTART = "restart"


class UpdateState(str, Enum):
    """
    Per-project state inside a parallel batch.
    """
    PENDING = "pending"
    UPDATING = "updating"
    SUCCESS = "success"
    FAILED = "failed"


class UpdateResult(BaseModel):
    """
    Terminal outcome of one project's update task.
    """
    index: int
    project_name: str
    state: UpdateState
    message: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.state == UpdateState.SUCCESS


class CheckResult(BaseModel):
    """
    Outcome of checking one project's images during a sweep.
    """
    index: int
    total: int
    project_name: str
    updates_available: int = 0
    error: Optional[str] = None


class UpdateBatch:
    """
    Tracks a set of selected projects through a parallel update.
    """

    def __init__(self, selected: Iterable[int]):
        self.selected: Set[int] = set(selected)
        self.states: Dict[int, UpdateState] = {i: UpdateState.PENDING for i in self.selected}
        self.results: Dict[int, UpdateResult] = {}
        self.completed = 0

    @property
    def total(self) -> int:
        return len(self.selected)

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total

    def mark_updating(self, index: int) -> None:
        self.states[index] = UpdateState.UPDATING

    def record(self, result: UpdateResult) -> None:
        if result.index in self.results:
            raise ValueError(f"result for project {result.index} already recorded")
        self.states[result.index] = result.state
        self.results[result.index] = result
        self.completed += 1

    def failures(self) -> Dict[int, UpdateResult]:
        return {i: r for i, r in self.results.items() if not r.success}
