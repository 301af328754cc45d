"""articleflow: stage-gated orchestration for article generation workflows."""

from .config import ArticleFlowConfig, PipelineConfig, load_config
from .context import ExecutionContext
from .contracts import ArticleInput, ArticleType, ContextSnapshot
from .errors import (
    ArticleFlowError,
    ConcurrentStageError,
    IllegalTransition,
    InvalidState,
    NoActiveStageError,
    NoExecutorForStage,
    NothingToApprove,
)
from .pipeline import ArticlePipeline, StageExecutor
from .state import STAGE_METADATA, OutputKind, StageStatus, WorkflowStage, WorkflowState

__version__ = "0.1.0"
__all__ = [
    "ArticleFlowConfig",
    "ArticleFlowError",
    "ArticleInput",
    "ArticlePipeline",
    "ArticleType",
    "ConcurrentStageError",
    "ContextSnapshot",
    "ExecutionContext",
    "IllegalTransition",
    "InvalidState",
    "NoActiveStageError",
    "NoExecutorForStage",
    "NothingToApprove",
    "OutputKind",
    "PipelineConfig",
    "STAGE_METADATA",
    "StageExecutor",
    "StageStatus",
    "WorkflowStage",
    "WorkflowState",
    "load_config",
]
