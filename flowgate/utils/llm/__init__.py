"""LLM provider layer used by the semantic verifier.

Supports Gemini, OpenAI and Ollama behind one interface. Configuration is read
from ~/.flowgate/config.toml, overridden by FLOWGATE_* environment variables.

Example config.toml:
    [llm]
    provider = "openai"

    [llm.openai]
    api_key = "your-api-key"
    default_model = "gpt-4o-mini"
    timeout = 30.0
"""

from .config import (
    GeminiConfig,
    LLMConfig,
    OllamaConfig,
    OpenAIConfig,
    load_config,
)
from .json_parser import parse_json_response
from .manager import LLMManager, get_provider, reset_manager
from .provider import LLMProvider

__all__ = [
    "get_provider",
    "reset_manager",
    "load_config",
    "parse_json_response",
    "LLMManager",
    "LLMProvider",
    "LLMConfig",
    "GeminiConfig",
    "OpenAIConfig",
    "OllamaConfig",
]
