"""Execution context: the full mutable record of one workflow run."""

from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any, Dict, List, Optional

from .contracts import (
    ArticleInput,
    ArticleOutputs,
    ClaimVerification,
    ContextSnapshot,
    ErrorRecord,
    HistoryEntry,
    InternalLink,
    OutputRecord,
    ResearchResult,
    StageError,
    StageMetrics,
    utcnow,
)
from .errors import (
    ConcurrentStageError,
    IllegalTransition,
    NoActiveStageError,
    NothingToApprove,
)
from .state import (
    STAGE_METADATA,
    STAGE_ORDER,
    OutputKind,
    StageStatus,
    WorkflowStage,
    WorkflowState,
    stage_for_output,
)

logger = logging.getLogger(__name__)


class ExecutionContext:
    """State, outputs, metrics and history of a single article run.

    The current state can only change through :meth:`transition_to`, which
    checks legality against the stage graph and records a history entry.
    """

    def __init__(self, article_input: ArticleInput) -> None:
        now = utcnow()
        initial = WorkflowState.initial()
        self._data = ContextSnapshot(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            input=article_input,
            state=initial,
            history=[
                HistoryEntry(timestamp=now, state=initial, action="Context initialized")
            ],
        )

    # ------------------------------------------------------------------
    # Snapshots
    @classmethod
    def from_snapshot(cls, snapshot: ContextSnapshot) -> "ExecutionContext":
        ctx = cls.__new__(cls)
        ctx._data = snapshot.model_copy(deep=True)
        return ctx

    def snapshot(self) -> ContextSnapshot:
        return self._data.model_copy(deep=True)

    def to_json(self) -> str:
        """Serialize the context to JSON."""
        return self._data.to_json()

    @classmethod
    def from_json(cls, data: str) -> "ExecutionContext":
        """Rebuild a context from :meth:`to_json` output."""
        return cls.from_snapshot(ContextSnapshot.from_json(data))

    def to_dict(self) -> Dict[str, Any]:
        return self._data.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionContext":
        return cls.from_snapshot(ContextSnapshot.model_validate(data))

    # ------------------------------------------------------------------
    # Read accessors
    @property
    def id(self) -> str:
        return self._data.id

    @property
    def input(self) -> ArticleInput:
        return self._data.input

    @property
    def state(self) -> WorkflowState:
        return self._data.state

    @property
    def created_at(self):
        return self._data.created_at

    @property
    def updated_at(self):
        return self._data.updated_at

    @property
    def active_stage(self) -> Optional[WorkflowStage]:
        return self._data.active_stage

    @property
    def outputs(self) -> ArticleOutputs:
        return self._data.outputs.model_copy(deep=True)

    @property
    def metrics(self) -> Dict[WorkflowStage, StageMetrics]:
        return {
            stage: metrics.model_copy(deep=True)
            for stage, metrics in self._data.metrics.items()
        }

    @property
    def history(self) -> List[HistoryEntry]:
        return list(self._data.history)

    @property
    def errors(self) -> List[ErrorRecord]:
        return list(self._data.errors)

    def get_record(self, kind: OutputKind) -> Optional[OutputRecord]:
        """Return a copy of the ``kind`` record; change it through the setters."""
        record = self._live_record(kind)
        return record.model_copy(deep=True) if record is not None else None

    def get_output(self, kind: OutputKind) -> Any:
        """Return the recorded value for ``kind`` or ``None``."""
        record = self.get_record(kind)
        return record.value if record is not None else None

    def retry_count(self, stage: WorkflowStage) -> int:
        metrics = self._data.metrics.get(stage)
        return metrics.retry_count if metrics else 0

    def is_finished(self) -> bool:
        return self._data.state.is_terminal()

    # ------------------------------------------------------------------
    # State transitions
    def transition_to(self, new_state: WorkflowState, action: str) -> None:
        """Move to ``new_state`` if the stage graph allows it.

        Raises:
            IllegalTransition: If the current state cannot reach ``new_state``.
        """
        current = self._data.state
        if not current.can_transition_to(new_state):
            raise IllegalTransition(current, new_state)
        self._data.state = new_state
        self._record(action)
        logger.info(f"[{self.id}] {new_state.describe()}: {action}")

    def restart_stage(self, reason: Optional[str] = None) -> None:
        """Re-open a failed or rejected stage for a fresh attempt.

        A rejected output is discarded so it cannot be approved without a
        new executor run. The stage's retry budget starts over.
        """
        current = self._data.state
        target = current.with_status(StageStatus.IN_PROGRESS)
        if not current.is_failed():
            raise IllegalTransition(current, target, "only failed or rejected stages restart")

        output = current.metadata.output
        if current.status is StageStatus.REJECTED and output is not None:
            setattr(self._data.outputs, output.value, None)
        metrics = self._data.metrics.get(current.stage)
        if metrics is not None:
            metrics.retry_count = 0

        action = f"Restarted {current.metadata.name}"
        if reason:
            action = f"{action}: {reason}"
        self.transition_to(target, action)

    # ------------------------------------------------------------------
    # Stage metrics
    def start_stage(self, stage: WorkflowStage) -> None:
        running = self._data.active_stage
        if running is not None:
            raise ConcurrentStageError(running, stage)

        metrics = self._data.metrics.setdefault(stage, StageMetrics())
        metrics.status = StageStatus.IN_PROGRESS
        metrics.started_at = utcnow()
        metrics.completed_at = None
        metrics.duration_ms = None
        metrics.tokens_used = None
        self._data.active_stage = stage
        self._record(f"Started {STAGE_METADATA[stage].name}")

    def complete_stage(self, tokens_used: Optional[int] = None) -> None:
        stage, metrics = self._finish_active("complete stage")
        metrics.status = StageStatus.COMPLETED
        metrics.tokens_used = tokens_used
        self._record(
            f"Completed {STAGE_METADATA[stage].name} in {metrics.duration_ms / 1000:.2f}s"
        )

    def fail_stage(self, error: BaseException) -> None:
        stage, metrics = self._finish_active("fail stage")
        message = str(error) or type(error).__name__
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        metrics.status = StageStatus.FAILED
        metrics.last_error = StageError(message=message, stack=stack or None)
        self._data.errors.append(
            ErrorRecord(
                timestamp=metrics.completed_at,
                stage=stage,
                message=message,
                stack=stack or None,
            )
        )
        self._record(f"Failed {STAGE_METADATA[stage].name}: {message}")

    def record_retry(self, stage: WorkflowStage) -> int:
        """Increment and return the retry counter for ``stage``."""
        metrics = self._data.metrics.setdefault(stage, StageMetrics())
        metrics.retry_count += 1
        self._touch()
        return metrics.retry_count

    def _finish_active(self, operation: str) -> tuple[WorkflowStage, StageMetrics]:
        stage = self._data.active_stage
        if stage is None:
            raise NoActiveStageError(operation)
        metrics = self._data.metrics[stage]
        now = utcnow()
        metrics.completed_at = now
        if metrics.started_at is not None:
            metrics.duration_ms = (now - metrics.started_at).total_seconds() * 1000
        else:
            metrics.duration_ms = 0.0
        self._data.active_stage = None
        return stage, metrics

    # ------------------------------------------------------------------
    # Outputs
    def set_outline(self, outline: str) -> None:
        self._set_output(OutputKind.OUTLINE, outline)

    def set_research_queries(self, queries: List[str]) -> None:
        self._set_output(OutputKind.RESEARCH_QUERIES, list(queries))

    def set_research_results(self, results: List[ResearchResult]) -> None:
        self._set_output(OutputKind.RESEARCH_RESULTS, list(results))

    def set_research_summary(self, summary: str) -> None:
        self._set_output(OutputKind.RESEARCH_SUMMARY, summary)

    def set_draft(self, draft: str) -> None:
        self._set_output(OutputKind.DRAFT, draft)

    def set_claim_verification(self, verifications: List[ClaimVerification]) -> None:
        self._set_output(OutputKind.CLAIM_VERIFICATION, list(verifications))

    def set_internal_links(self, links: List[InternalLink]) -> None:
        self._set_output(OutputKind.INTERNAL_LINKS, list(links))

    def _live_record(self, kind: OutputKind) -> Optional[OutputRecord]:
        return getattr(self._data.outputs, OutputKind(kind).value)

    def _set_output(self, kind: OutputKind, value: Any) -> None:
        # Validate through the field type so a bad value fails here, not on dump.
        data = self._data.outputs.model_dump()
        data[kind.value] = {"value": value, "recorded_at": utcnow()}
        self._data.outputs = ArticleOutputs.model_validate(data)
        self._touch()

    # ------------------------------------------------------------------
    # Approvals
    def approve(self, kind: OutputKind) -> None:
        """Approve the recorded ``kind`` output and complete its stage."""
        record = self._gated_record(kind, StageStatus.COMPLETED)
        self.transition_to(
            self._data.state.with_status(StageStatus.COMPLETED),
            f"{_label(kind)} approved",
        )
        record.approved_at = self._data.updated_at

    def reject(self, kind: OutputKind, reason: str) -> None:
        """Reject the recorded ``kind`` output; the stage must be restarted."""
        record = self._gated_record(kind, StageStatus.REJECTED)
        self.transition_to(
            self._data.state.with_status(StageStatus.REJECTED),
            f"{_label(kind)} rejected: {reason}",
        )
        record.rejected_at = self._data.updated_at
        record.rejection_reason = reason

    def approve_outline(self) -> None:
        self.approve(OutputKind.OUTLINE)

    def reject_outline(self, reason: str) -> None:
        self.reject(OutputKind.OUTLINE, reason)

    def approve_research_queries(self) -> None:
        self.approve(OutputKind.RESEARCH_QUERIES)

    def reject_research_queries(self, reason: str) -> None:
        self.reject(OutputKind.RESEARCH_QUERIES, reason)

    def approve_draft(self) -> None:
        self.approve(OutputKind.DRAFT)

    def reject_draft(self, reason: str) -> None:
        self.reject(OutputKind.DRAFT, reason)

    def _gated_record(self, kind: OutputKind, status: StageStatus) -> OutputRecord:
        kind = OutputKind(kind)
        record = self._live_record(kind)
        if record is None:
            raise NothingToApprove(kind)
        stage = stage_for_output(kind)
        current = self._data.state
        if current.stage is not stage:
            raise IllegalTransition(
                current,
                WorkflowState(stage=stage, status=status),
                f"{kind.value} belongs to {STAGE_METADATA[stage].name}",
            )
        return record

    # ------------------------------------------------------------------
    # Reporting
    def get_summary(self) -> str:
        """Human-readable report built only from recorded data."""
        data = self._data
        elapsed = (data.updated_at - data.created_at).total_seconds()
        queries = self.get_output(OutputKind.RESEARCH_QUERIES) or []
        results = self.get_output(OutputKind.RESEARCH_RESULTS) or []

        stage_lines = []
        for stage in STAGE_ORDER:
            metrics = data.metrics.get(stage)
            if metrics is None:
                continue
            status = metrics.status.value if metrics.status else "pending"
            duration = (metrics.duration_ms or 0.0) / 1000
            stage_lines.append(
                f"  - {STAGE_METADATA[stage].name}: {status} "
                f"({duration:.2f}s, retries: {metrics.retry_count})"
            )

        lines = [
            "Pipeline Summary:",
            f"  ID: {data.id}",
            f"  Final State: {data.state.describe()}",
            f"  Total Duration: {elapsed:.2f}s",
            f"  Research Queries: {len(queries)}",
            f"  Research Results: {len(results)}",
            f"  Errors: {len(data.errors)}",
            "",
            "Stage Results:",
        ]
        lines.extend(stage_lines or ["  (none)"])
        return "\n".join(lines)

    # ------------------------------------------------------------------
    def _record(self, action: str) -> None:
        now = utcnow()
        self._data.history.append(
            HistoryEntry(timestamp=now, state=self._data.state, action=action)
        )
        self._data.updated_at = now

    def _touch(self) -> None:
        self._data.updated_at = utcnow()

    def __repr__(self) -> str:
        return f"ExecutionContext(id={self.id!r}, state={self.state.describe()!r})"


def _label(kind: OutputKind) -> str:
    return OutputKind(kind).value.replace("_", " ").capitalize()
