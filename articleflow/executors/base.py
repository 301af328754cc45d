"""Shared plumbing for LLM-backed stage executors."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..context import ExecutionContext
from ..errors import MissingStageInput
from ..prompts import render_prompt
from ..services.llm import LLMService
from ..state import OutputKind, WorkflowStage

logger = logging.getLogger(__name__)


class LLMStageExecutor:
    """Render a prompt, call the LLM, parse the reply and store it.

    Subclasses set ``stage`` and ``template`` and implement :meth:`store`;
    they override :meth:`prompt_values` and :meth:`parse` when the stage
    needs earlier outputs or structured results.
    """

    stage: WorkflowStage
    template: str

    def __init__(
        self, llm: LLMService, prompts_dir: Optional[Union[str, Path]] = None
    ) -> None:
        self._llm = llm
        self._prompts_dir = prompts_dir

    async def __call__(self, ctx: ExecutionContext) -> Optional[int]:
        prompt = render_prompt(
            self.template, ctx.input, self._prompts_dir, **self.prompt_values(ctx)
        )
        response = await self._llm.generate(prompt)
        value = self.parse(response.content)
        self.store(ctx, value)
        logger.info(
            f"{self.stage.value} produced output for context {ctx.id} "
            f"({response.tokens_used or 0} tokens)"
        )
        return response.tokens_used

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        return {}

    def parse(self, content: str) -> Any:
        text = content.strip()
        if not text:
            raise ValueError(f"{self.stage.value} returned an empty response")
        return text

    def store(self, ctx: ExecutionContext, value: Any) -> None:
        raise NotImplementedError

    def require(self, ctx: ExecutionContext, kind: OutputKind) -> Any:
        """Return output ``kind`` or raise ``MissingStageInput``."""
        value = ctx.get_output(kind)
        if value is None:
            raise MissingStageInput(self.stage, kind)
        return value


def split_fields(line: str, expected: int) -> Optional[list[str]]:
    """Split a ``a | b | c`` line into exactly ``expected`` stripped fields."""
    if "|" not in line:
        return None
    parts = [part.strip() for part in line.split("|")]
    if len(parts) < expected:
        parts.extend([""] * (expected - len(parts)))
    elif len(parts) > expected:
        # Extra separators belong to the first field.
        head = " | ".join(parts[: len(parts) - expected + 1])
        parts = [head] + parts[len(parts) - expected + 1 :]
    return parts
