"""Stage executors and pipeline wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union

from ..config import ArticleFlowConfig
from ..constants import DEFAULT_SEARCH_RETRIES
from ..pipeline import ArticlePipeline, StageExecutor
from ..services.llm import AgentLLMService, LLMService
from ..services.search import SearchClient, SerpSearchClient
from ..state import WorkflowStage
from .base import LLMStageExecutor
from .outline import OutlineGenerator
from .research import ResearchAgent, ResearchPlanner, ResearchSummarizer
from .writing import ClaimVerifier, DraftWriter, InternalLinker


def build_default_executors(
    llm: LLMService,
    search: SearchClient,
    prompts_dir: Optional[Union[str, Path]] = None,
    search_retries: int = DEFAULT_SEARCH_RETRIES,
) -> Dict[WorkflowStage, StageExecutor]:
    """Return one executor per working stage."""
    return {
        WorkflowStage.OUTLINE_GENERATION: OutlineGenerator(llm, prompts_dir),
        WorkflowStage.RESEARCH_QUERY_GENERATION: ResearchPlanner(llm, prompts_dir),
        WorkflowStage.RESEARCH_EXECUTION: ResearchAgent(search, max_retries=search_retries),
        WorkflowStage.RESEARCH_SUMMARIZATION: ResearchSummarizer(llm, prompts_dir),
        WorkflowStage.DRAFT_GENERATION: DraftWriter(llm, prompts_dir),
        WorkflowStage.VERIFICATION: ClaimVerifier(llm, prompts_dir),
        WorkflowStage.INTERNAL_LINKING: InternalLinker(llm, prompts_dir),
    }


def build_pipeline(
    config: ArticleFlowConfig,
    llm: Optional[LLMService] = None,
    search: Optional[SearchClient] = None,
) -> ArticlePipeline:
    """Create a pipeline wired from ``config``.

    ``llm`` and ``search`` default to the pydantic-ai agent and SerpAPI
    client described by the config.
    """
    llm = llm or AgentLLMService(config.llm.model, config.llm.system_prompt)
    search = search or SerpSearchClient(
        config.search.api_key,
        max_results_per_query=config.search.max_results_per_query,
        engine=config.search.engine,
        timeout=config.search.timeout,
    )
    executors = build_default_executors(
        llm,
        search,
        prompts_dir=config.prompts_dir,
        search_retries=config.search.max_retries,
    )
    return ArticlePipeline(executors, config=config.pipeline)


__all__ = [
    "ClaimVerifier",
    "DraftWriter",
    "InternalLinker",
    "LLMStageExecutor",
    "OutlineGenerator",
    "ResearchAgent",
    "ResearchPlanner",
    "ResearchSummarizer",
    "build_default_executors",
    "build_pipeline",
]
