from __future__ import annotations

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_RESULTS_PER_QUERY,
    DEFAULT_MAX_RETRIES_PER_STAGE,
    DEFAULT_SEARCH_RETRIES,
)
from .state import WorkflowStage


class PipelineConfig(BaseModel):
    """Retry and approval policy for the pipeline."""

    max_retries_per_stage: int = Field(default=DEFAULT_MAX_RETRIES_PER_STAGE, ge=0)
    auto_approve: bool = False
    auto_approve_stages: List[WorkflowStage] = Field(default_factory=list)

    def skips_approval(self, stage: WorkflowStage) -> bool:
        return self.auto_approve or stage in self.auto_approve_stages


class LLMConfig(BaseModel):
    """Model selection for the LLM-backed stages."""

    model: str = DEFAULT_LLM_MODEL
    system_prompt: Optional[str] = None


class SearchConfig(BaseModel):
    """SerpAPI search settings."""

    api_key: Optional[str] = None
    engine: str = "google"
    max_results_per_query: int = Field(default=DEFAULT_MAX_RESULTS_PER_QUERY, ge=1)
    max_retries: int = Field(default=DEFAULT_SEARCH_RETRIES, ge=1)
    timeout: float = 30.0


class ArticleFlowConfig(BaseModel):
    """Top-level configuration model."""

    pipeline: PipelineConfig = PipelineConfig()
    llm: LLMConfig = LLMConfig()
    search: SearchConfig = SearchConfig()
    prompts_dir: Optional[str] = None


def load_config(path: Optional[str] = None) -> ArticleFlowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ARTICLEFLOW_CONFIG
            env variable or 'articleflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("ARTICLEFLOW_CONFIG", DEFAULT_CONFIG_FILE)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ArticleFlowConfig(**data)
    else:
        config = ArticleFlowConfig()

    env_api_key = os.getenv("SERPAPI_KEY")
    if env_api_key:
        config.search.api_key = env_api_key
    env_model = os.getenv("ARTICLEFLOW_LLM_MODEL")
    if env_model:
        config.llm.model = env_model
    return config
