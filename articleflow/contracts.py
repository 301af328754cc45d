"""Data contracts for article workflows: input, outputs, metrics and snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import SNAPSHOT_VERSION
from .state import StageStatus, WorkflowStage, WorkflowState

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArticleType(str, Enum):
    LISTICLE = "listicle"
    REGULAR = "regular"
    COMPARISON = "comparison"


class ArticleInput(BaseModel):
    """Immutable brief describing the article to produce."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    usps: str = Field(min_length=1, description="Unique selling points")
    min_word_count: int = Field(default=1000, ge=1000)
    max_word_count: int = Field(default=2000, ge=1000)
    client_guidelines: str = Field(min_length=1)
    general_guidelines: str = Field(min_length=1)
    example_article: str = Field(min_length=1)
    outline_description: str = Field(min_length=1)
    article_type: ArticleType = ArticleType.REGULAR
    preferred_sources: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_word_counts(self) -> "ArticleInput":
        if self.max_word_count < self.min_word_count:
            raise ValueError("max_word_count must not be lower than min_word_count")
        return self


class ResearchResult(BaseModel):
    """A single de-duplicated search hit."""

    url: str
    text: str


class ClaimVerification(BaseModel):
    """Verdict for one factual claim found in the draft."""

    claim: str
    verdict: Literal["supported", "unsupported", "uncertain"]
    source_url: Optional[str] = None
    note: Optional[str] = None


class InternalLink(BaseModel):
    """Suggested link from an anchor phrase in the draft to a URL."""

    anchor_text: str
    url: str


class OutputRecord(BaseModel, Generic[T]):
    """Recorded stage output plus its approval outcome."""

    value: T
    recorded_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class ArticleOutputs(BaseModel):
    """All outputs keyed by ``OutputKind`` value."""

    outline: Optional[OutputRecord[str]] = None
    research_queries: Optional[OutputRecord[List[str]]] = None
    research_results: Optional[OutputRecord[List[ResearchResult]]] = None
    research_summary: Optional[OutputRecord[str]] = None
    draft: Optional[OutputRecord[str]] = None
    claim_verification: Optional[OutputRecord[List[ClaimVerification]]] = None
    internal_links: Optional[OutputRecord[List[InternalLink]]] = None


class StageError(BaseModel):
    message: str
    stack: Optional[str] = None


class StageMetrics(BaseModel):
    """Execution metrics for one stage, kept across retries."""

    status: Optional[StageStatus] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    tokens_used: Optional[int] = None
    last_error: Optional[StageError] = None
    retry_count: int = 0


class HistoryEntry(BaseModel):
    """Audit log line: the state after ``action`` happened."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    state: WorkflowState
    action: str


class ErrorRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    stage: WorkflowStage
    message: str
    stack: Optional[str] = None


class ContextSnapshot(BaseModel):
    """Serializable form of an execution context."""

    id: str
    created_at: datetime
    updated_at: datetime
    input: ArticleInput
    state: WorkflowState
    outputs: ArticleOutputs = Field(default_factory=ArticleOutputs)
    metrics: Dict[WorkflowStage, StageMetrics] = Field(default_factory=dict)
    history: List[HistoryEntry] = Field(default_factory=list)
    errors: List[ErrorRecord] = Field(default_factory=list)
    active_stage: Optional[WorkflowStage] = None
    snapshot_version: str = SNAPSHOT_VERSION

    def to_json(self) -> str:
        """Serialize snapshot to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "ContextSnapshot":
        """Deserialize snapshot from JSON."""
        return cls.model_validate_json(data)
