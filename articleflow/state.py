"""Stage graph and validated workflow state values.

The graph is pure data: every stage declares its display name, whether it
is gated by an approval, which statuses it may hold, the output kind it
produces and its successor. ``WorkflowState`` consults these tables for
all legality checks.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .errors import InvalidState


class WorkflowStage(str, Enum):
    """Ordered phases of the article workflow."""

    OUTLINE_GENERATION = "outline_generation"
    RESEARCH_QUERY_GENERATION = "research_query_generation"
    RESEARCH_EXECUTION = "research_execution"
    RESEARCH_SUMMARIZATION = "research_summarization"
    DRAFT_GENERATION = "draft_generation"
    VERIFICATION = "verification"
    INTERNAL_LINKING = "internal_linking"
    COMPLETED = "completed"

    @property
    def order(self) -> int:
        """Position of the stage in the workflow order."""
        return STAGE_ORDER.index(self)

    def __str__(self) -> str:
        return self.value


class StageStatus(str, Enum):
    """Execution status of the current stage."""

    IN_PROGRESS = "in_progress"
    AWAITING_APPROVAL = "awaiting_approval"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    def __str__(self) -> str:
        return self.value


class OutputKind(str, Enum):
    """Logical outputs recorded on an execution context."""

    OUTLINE = "outline"
    RESEARCH_QUERIES = "research_queries"
    RESEARCH_RESULTS = "research_results"
    RESEARCH_SUMMARY = "research_summary"
    DRAFT = "draft"
    CLAIM_VERIFICATION = "claim_verification"
    INTERNAL_LINKS = "internal_links"

    def __str__(self) -> str:
        return self.value


STAGE_ORDER: tuple[WorkflowStage, ...] = tuple(WorkflowStage)
FIRST_STAGE = STAGE_ORDER[0]
TERMINAL_STAGE = WorkflowStage.COMPLETED


class StageMetadata(BaseModel):
    """Static description of one stage."""

    model_config = ConfigDict(frozen=True)

    name: str
    requires_approval: bool
    allowed_statuses: frozenset[StageStatus]
    next_stage: Optional[WorkflowStage]
    output: Optional[OutputKind] = None


_WORK_STATUSES = frozenset(
    {StageStatus.IN_PROGRESS, StageStatus.COMPLETED, StageStatus.FAILED}
)
_GATED_STATUSES = _WORK_STATUSES | {StageStatus.AWAITING_APPROVAL, StageStatus.REJECTED}
_TERMINAL_STATUSES = frozenset({StageStatus.IN_PROGRESS, StageStatus.COMPLETED})


def _stage(
    name: str,
    requires_approval: bool,
    next_stage: Optional[WorkflowStage],
    output: Optional[OutputKind],
) -> StageMetadata:
    if next_stage is None:
        statuses = _TERMINAL_STATUSES
    elif requires_approval:
        statuses = _GATED_STATUSES
    else:
        statuses = _WORK_STATUSES
    return StageMetadata(
        name=name,
        requires_approval=requires_approval,
        allowed_statuses=statuses,
        next_stage=next_stage,
        output=output,
    )


STAGE_METADATA: Mapping[WorkflowStage, StageMetadata] = MappingProxyType(
    {
        WorkflowStage.OUTLINE_GENERATION: _stage(
            "Outline Generation",
            True,
            WorkflowStage.RESEARCH_QUERY_GENERATION,
            OutputKind.OUTLINE,
        ),
        WorkflowStage.RESEARCH_QUERY_GENERATION: _stage(
            "Research Query Generation",
            True,
            WorkflowStage.RESEARCH_EXECUTION,
            OutputKind.RESEARCH_QUERIES,
        ),
        WorkflowStage.RESEARCH_EXECUTION: _stage(
            "Research Execution",
            False,
            WorkflowStage.RESEARCH_SUMMARIZATION,
            OutputKind.RESEARCH_RESULTS,
        ),
        WorkflowStage.RESEARCH_SUMMARIZATION: _stage(
            "Research Summarization",
            False,
            WorkflowStage.DRAFT_GENERATION,
            OutputKind.RESEARCH_SUMMARY,
        ),
        WorkflowStage.DRAFT_GENERATION: _stage(
            "Draft Generation",
            True,
            WorkflowStage.VERIFICATION,
            OutputKind.DRAFT,
        ),
        WorkflowStage.VERIFICATION: _stage(
            "Claim Verification",
            False,
            WorkflowStage.INTERNAL_LINKING,
            OutputKind.CLAIM_VERIFICATION,
        ),
        WorkflowStage.INTERNAL_LINKING: _stage(
            "Internal Linking",
            False,
            WorkflowStage.COMPLETED,
            OutputKind.INTERNAL_LINKS,
        ),
        WorkflowStage.COMPLETED: _stage("Completed", False, None, None),
    }
)

# Status -> statuses reachable without leaving the stage.
SAME_STAGE_TRANSITIONS: Mapping[StageStatus, frozenset[StageStatus]] = MappingProxyType(
    {
        StageStatus.IN_PROGRESS: frozenset(StageStatus),
        StageStatus.AWAITING_APPROVAL: frozenset(
            {StageStatus.COMPLETED, StageStatus.REJECTED}
        ),
        StageStatus.REJECTED: frozenset({StageStatus.IN_PROGRESS}),
        StageStatus.FAILED: frozenset({StageStatus.IN_PROGRESS}),
        StageStatus.COMPLETED: frozenset(),
    }
)

OUTPUT_STAGES: Mapping[OutputKind, WorkflowStage] = MappingProxyType(
    {meta.output: stage for stage, meta in STAGE_METADATA.items() if meta.output}
)


def stage_for_output(kind: OutputKind) -> WorkflowStage:
    """Return the stage that produces ``kind``."""
    return OUTPUT_STAGES[OutputKind(kind)]


class WorkflowState(BaseModel):
    """Validated (stage, status) pair.

    Construction raises ``InvalidState`` when ``status`` is not legal for
    ``stage``. States order by stage index.
    """

    model_config = ConfigDict(frozen=True)

    stage: WorkflowStage
    status: StageStatus

    @model_validator(mode="after")
    def _check_status_allowed(self) -> "WorkflowState":
        if not self.is_valid():
            raise InvalidState(self.stage, self.status)
        return self

    @classmethod
    def initial(cls) -> "WorkflowState":
        return cls(stage=FIRST_STAGE, status=StageStatus.IN_PROGRESS)

    @property
    def metadata(self) -> StageMetadata:
        return STAGE_METADATA[self.stage]

    def is_valid(self) -> bool:
        return self.status in self.metadata.allowed_statuses

    def is_complete(self) -> bool:
        return self.status is StageStatus.COMPLETED

    def is_failed(self) -> bool:
        return self.status in (StageStatus.FAILED, StageStatus.REJECTED)

    def is_terminal(self) -> bool:
        """True once the workflow has fully finished."""
        return self.stage is TERMINAL_STAGE and self.is_complete()

    def requires_approval(self) -> bool:
        return self.metadata.requires_approval

    def next_stage(self) -> Optional[WorkflowStage]:
        return self.metadata.next_stage

    def can_transition_to(self, target: "WorkflowState") -> bool:
        """Return ``True`` if moving to ``target`` is legal.

        Same-stage moves follow ``SAME_STAGE_TRANSITIONS``; cross-stage
        moves are only allowed from a completed stage into its declared
        successor.
        """
        if not target.is_valid():
            return False
        if target.stage.order < self.stage.order:
            return False
        if target.stage is self.stage:
            return target.status in SAME_STAGE_TRANSITIONS[self.status]
        if target.stage is self.next_stage():
            return self.is_complete()
        return False

    def advance(self) -> Optional["WorkflowState"]:
        """Entry state of the successor stage, or ``None``."""
        if not self.is_complete():
            return None
        next_stage = self.next_stage()
        if next_stage is None:
            return None
        return WorkflowState(stage=next_stage, status=StageStatus.IN_PROGRESS)

    def with_status(self, status: StageStatus) -> "WorkflowState":
        """Return the same-stage state with ``status`` (validated, unchecked)."""
        return WorkflowState(stage=self.stage, status=status)

    def describe(self) -> str:
        return f"{self.metadata.name} - {self.status.label}"

    def __str__(self) -> str:
        return self.describe()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, WorkflowState):
            return NotImplemented
        return self.stage.order < other.stage.order

    def __le__(self, other: object) -> bool:
        if not isinstance(other, WorkflowState):
            return NotImplemented
        return self.stage.order <= other.stage.order

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, WorkflowState):
            return NotImplemented
        return self.stage.order > other.stage.order

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, WorkflowState):
            return NotImplemented
        return self.stage.order >= other.stage.order


__all__ = [
    "FIRST_STAGE",
    "OUTPUT_STAGES",
    "OutputKind",
    "SAME_STAGE_TRANSITIONS",
    "STAGE_METADATA",
    "STAGE_ORDER",
    "StageMetadata",
    "StageStatus",
    "TERMINAL_STAGE",
    "WorkflowStage",
    "WorkflowState",
    "stage_for_output",
]
