"""Exception hierarchy for articleflow workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .state import WorkflowState


class ArticleFlowError(Exception):
    """Base class for all articleflow errors."""


class WorkflowInvariantError(ArticleFlowError):
    """Misuse of the state machine or context API.

    These indicate a logic defect and are never retried.
    """


class InvalidState(WorkflowInvariantError):
    """A (stage, status) pair not declared legal for the stage."""

    def __init__(self, stage: Any, status: Any):
        super().__init__(
            f"Invalid state: {_value(stage)} cannot have status {_value(status)}"
        )
        self.stage = stage
        self.status = status


class IllegalTransition(WorkflowInvariantError):
    """A state change the transition table does not permit."""

    def __init__(self, current: "WorkflowState", target: "WorkflowState", detail: str = ""):
        message = f"Invalid transition from {current.describe()} to {target.describe()}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.current = current
        self.target = target


class ConcurrentStageError(WorkflowInvariantError):
    """A stage was started while another one is still running."""

    def __init__(self, running: Any, requested: Any):
        super().__init__(
            f"Cannot start {_value(requested)} while {_value(running)} is running"
        )
        self.running = running
        self.requested = requested


class NoActiveStageError(WorkflowInvariantError):
    """A stage completion or failure was reported with no stage running."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation}: no stage is currently running")
        self.operation = operation


class NothingToApprove(WorkflowInvariantError):
    """Approve/reject called before the output was recorded."""

    def __init__(self, kind: Any):
        super().__init__(f"No {_value(kind)} has been recorded to approve or reject")
        self.kind = kind


class NoExecutorForStage(ArticleFlowError):
    """The pipeline has no executor registered for the current stage."""

    def __init__(self, stage: Any):
        super().__init__(f"No executor registered for stage {_value(stage)}")
        self.stage = stage


class MissingStageInput(ArticleFlowError):
    """An executor needs an output that an earlier stage has not produced."""

    def __init__(self, stage: Any, kind: Any):
        super().__init__(
            f"Stage {_value(stage)} requires {_value(kind)}, but none was recorded"
        )
        self.stage = stage
        self.kind = kind


def _value(item: Any) -> str:
    return str(getattr(item, "value", item))
