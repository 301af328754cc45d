"""Research planning, execution and summarization stages."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_SEARCH_RETRIES
from ..context import ExecutionContext
from ..contracts import ResearchResult
from ..errors import MissingStageInput
from ..services.search import SearchClient, SearchResult
from ..state import OutputKind, WorkflowStage
from ..utils import retry
from .base import LLMStageExecutor

logger = logging.getLogger(__name__)


class ResearchPlanner(LLMStageExecutor):
    """Turn the outline into a list of web search queries."""

    stage = WorkflowStage.RESEARCH_QUERY_GENERATION
    template = "research_planner"

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        return {"outline": self.require(ctx, OutputKind.OUTLINE)}

    def parse(self, content: str) -> List[str]:
        queries = [
            line.strip()
            for line in content.splitlines()
            if line.strip() and not line.strip().startswith("#")
        ]
        if not queries:
            raise ValueError("research planner returned no queries")
        return queries

    def store(self, ctx: ExecutionContext, value: List[str]) -> None:
        ctx.set_research_queries(value)


class ResearchAgent:
    """Run every approved query against the search client.

    Each query gets ``max_retries`` attempts with exponential backoff; a
    query that keeps failing is skipped. Results are de-duplicated by URL.
    """

    stage = WorkflowStage.RESEARCH_EXECUTION

    def __init__(
        self,
        search: SearchClient,
        max_retries: int = DEFAULT_SEARCH_RETRIES,
        backoff_base: float = 2.0,
    ) -> None:
        self._search = search
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    async def __call__(self, ctx: ExecutionContext) -> Optional[int]:
        queries = ctx.get_output(OutputKind.RESEARCH_QUERIES)
        if queries is None:
            raise MissingStageInput(self.stage, OutputKind.RESEARCH_QUERIES)
        if not queries:
            logger.info("No research queries approved, recording empty results")
            ctx.set_research_results([])
            return None

        logger.info(f"Executing research for {len(queries)} queries")
        results: List[ResearchResult] = []
        seen_urls: set[str] = set()
        for query in queries:
            for hit in await self._search_with_retry(query):
                if not hit.url or hit.url in seen_urls:
                    continue
                seen_urls.add(hit.url)
                results.append(ResearchResult(url=hit.url, text=f"{hit.title}\n{hit.snippet}"))

        logger.info(
            f"Research completed: {len(results)} unique results from {len(queries)} queries"
        )
        ctx.set_research_results(results)
        return None

    async def _search_with_retry(self, query: str) -> List[SearchResult]:
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._search.search(query)
            except Exception as e:
                logger.warning(
                    f"Search attempt {attempt}/{self.max_retries} failed for {query!r}: {e}"
                )
                if attempt < self.max_retries:
                    await retry.schedule_retry(attempt, base=self.backoff_base)
        logger.warning(f"Skipping {query!r} after {self.max_retries} failed attempts")
        return []


class ResearchSummarizer(LLMStageExecutor):
    """Condense the research results into notes for the writer."""

    stage = WorkflowStage.RESEARCH_SUMMARIZATION
    template = "research_summary"

    def prompt_values(self, ctx: ExecutionContext) -> Dict[str, Any]:
        results = self.require(ctx, OutputKind.RESEARCH_RESULTS)
        research = "\n\n".join(f"[{r.url}]\n{r.text}" for r in results)
        return {
            "outline": self.require(ctx, OutputKind.OUTLINE),
            "research": research or "(no research results)",
        }

    def store(self, ctx: ExecutionContext, value: str) -> None:
        ctx.set_research_summary(value)
