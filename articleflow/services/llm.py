"""LLM adapter backed by a pydantic-ai agent."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Union

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models import Model

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional content writer and researcher. "
    "Follow the formatting instructions in each request exactly."
)


class LLMResponse(BaseModel):
    content: str
    model: Optional[str] = None
    tokens_used: Optional[int] = None


class LLMService(Protocol):
    """Protocol for text generation backends."""

    async def generate(self, prompt: str) -> LLMResponse:
        """Return the model completion for ``prompt``."""


class AgentLLMService:
    """Generate text with a pydantic-ai ``Agent``.

    ``model`` is anything ``Agent`` accepts: a model instance or a
    ``provider:name`` string such as ``ollama:gemma3``.
    """

    def __init__(
        self,
        model: Union[str, Model],
        system_prompt: Optional[str] = None,
    ) -> None:
        self._agent = Agent(
            model,
            output_type=str,
            system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT,
            defer_model_check=True,
        )
        self._model_name = model if isinstance(model, str) else model.model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate(self, prompt: str) -> LLMResponse:
        logger.debug(f"Generating with {self._model_name} ({len(prompt)} prompt chars)")
        result = await self._agent.run(prompt)
        usage = result.usage()
        return LLMResponse(
            content=result.output,
            model=self._model_name,
            tokens_used=usage.total_tokens,
        )
