"""SerpAPI web search client."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import httpx
from pydantic import BaseModel

from ..constants import DEFAULT_MAX_RESULTS_PER_QUERY

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class SearchClient(Protocol):
    """Protocol for web search backends."""

    async def search(self, query: str) -> List[SearchResult]:
        """Return organic results for ``query``."""


class SerpSearchClient:
    """Query SerpAPI and map organic results to ``SearchResult``."""

    def __init__(
        self,
        api_key: Optional[str],
        max_results_per_query: int = DEFAULT_MAX_RESULTS_PER_QUERY,
        engine: str = "google",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError(
                "SerpAPI key is required. Set SERPAPI_KEY environment variable "
                "or search.api_key in the config file."
            )
        self._api_key = api_key
        self.max_results_per_query = max_results_per_query
        self.engine = engine
        self.timeout = timeout
        self._client = client

    async def search(self, query: str) -> List[SearchResult]:
        params = {
            "api_key": self._api_key,
            "engine": self.engine,
            "q": query,
            "num": self.max_results_per_query,
        }
        if self._client is not None:
            response = await self._client.get(SERPAPI_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(SERPAPI_URL, params=params)
        response.raise_for_status()

        organic = response.json().get("organic_results") or []
        results = [
            SearchResult(
                title=item.get("title") or "",
                url=item.get("link") or "",
                snippet=item.get("snippet") or "",
            )
            for item in organic[: self.max_results_per_query]
        ]
        logger.debug(f"Search for {query!r} returned {len(results)} results")
        return results
