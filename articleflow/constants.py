"""Shared defaults for articleflow."""

DEFAULT_MAX_RETRIES_PER_STAGE = 3
DEFAULT_LLM_MODEL = "ollama:gemma3"
DEFAULT_MAX_RESULTS_PER_QUERY = 5
DEFAULT_SEARCH_RETRIES = 3
DEFAULT_CONFIG_FILE = "articleflow.yaml"
SNAPSHOT_VERSION = "1"
