from __future__ import annotations

from ..context import ExecutionContext
from ..state import WorkflowStage
from .base import LLMStageExecutor


class OutlineGenerator(LLMStageExecutor):
    """Draft the article outline from the brief."""

    stage = WorkflowStage.OUTLINE_GENERATION
    template = "outline"

    def store(self, ctx: ExecutionContext, value: str) -> None:
        ctx.set_outline(value)
