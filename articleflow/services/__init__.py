"""External collaborators used by the stage executors."""

from .llm import AgentLLMService, LLMResponse, LLMService
from .search import SearchClient, SearchResult, SerpSearchClient

__all__ = [
    "AgentLLMService",
    "LLMResponse",
    "LLMService",
    "SearchClient",
    "SearchResult",
    "SerpSearchClient",
]
