"""Configuration for the verifier's LLM provider.

Reads ~/.flowgate/config.toml and environment variables. Environment
variables take precedence over config file values.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, cast

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS, OLLAMA_TIMEOUT

logger = logging.getLogger(__name__)

ProviderType = Literal["gemini", "openai", "ollama"]

DEFAULT_CONFIG_PATH = Path.home() / ".flowgate" / "config.toml"


@dataclass
class GeminiConfig:
    api_key: str = ""
    default_model: str = DEFAULT_MODELS["gemini"]
    timeout: float = DEFAULT_API_TIMEOUT


@dataclass
class OpenAIConfig:
    api_key: str = ""
    default_model: str = DEFAULT_MODELS["openai"]
    base_url: str = ""  # Optional, for Azure/custom endpoints
    timeout: float = DEFAULT_API_TIMEOUT


@dataclass
class OllamaConfig:
    base_url: str = "http://localhost:11434"
    default_model: str = DEFAULT_MODELS["ollama"]
    timeout: float = OLLAMA_TIMEOUT


@dataclass
class LLMConfig:
    """Main LLM configuration.

    provider is None until a config file or FLOWGATE_LLM_PROVIDER names one;
    with no provider the verifier runs offline.
    """

    provider: Optional[ProviderType] = None
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)


def _load_toml(path: Path) -> dict:
    """Load a TOML file, returning {} when missing or unparseable."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring unreadable LLM config %s: %s", path, e)
        return {}


def load_config(config_path: Optional[Path] = None) -> LLMConfig:
    """Load LLM configuration from file and environment.

    Configuration sources (in order of precedence):
    1. Environment variables (FLOWGATE_*)
    2. Config file (~/.flowgate/config.toml, [llm] table)
    3. Default values
    """
    path = config_path or DEFAULT_CONFIG_PATH
    llm_config = _load_toml(path).get("llm", {})

    config = LLMConfig()
    config.provider = _get_provider_type(
        os.environ.get("FLOWGATE_LLM_PROVIDER") or llm_config.get("provider")
    )

    gemini_section = llm_config.get("gemini", {})
    config.gemini = GeminiConfig(
        api_key=(
            os.environ.get("FLOWGATE_GEMINI_API_KEY")
            or os.environ.get("GOOGLE_API_KEY")
            or gemini_section.get("api_key", "")
        ),
        default_model=(
            os.environ.get("FLOWGATE_GEMINI_MODEL")
            or gemini_section.get("default_model", DEFAULT_MODELS["gemini"])
        ),
        timeout=float(
            os.environ.get("FLOWGATE_GEMINI_TIMEOUT")
            or gemini_section.get("timeout", DEFAULT_API_TIMEOUT)
        ),
    )

    openai_section = llm_config.get("openai", {})
    config.openai = OpenAIConfig(
        api_key=(
            os.environ.get("FLOWGATE_OPENAI_API_KEY")
            or os.environ.get("OPENAI_API_KEY")
            or openai_section.get("api_key", "")
        ),
        default_model=(
            os.environ.get("FLOWGATE_OPENAI_MODEL")
            or openai_section.get("default_model", DEFAULT_MODELS["openai"])
        ),
        base_url=(
            os.environ.get("FLOWGATE_OPENAI_BASE_URL")
            or openai_section.get("base_url", "")
        ),
        timeout=float(
            os.environ.get("FLOWGATE_OPENAI_TIMEOUT")
            or openai_section.get("timeout", DEFAULT_API_TIMEOUT)
        ),
    )

    ollama_section = llm_config.get("ollama", {})
    config.ollama = OllamaConfig(
        base_url=(
            os.environ.get("FLOWGATE_OLLAMA_BASE_URL")
            or ollama_section.get("base_url", "http://localhost:11434")
        ),
        default_model=(
            os.environ.get("FLOWGATE_OLLAMA_MODEL")
            or ollama_section.get("default_model", DEFAULT_MODELS["ollama"])
        ),
        timeout=float(
            os.environ.get("FLOWGATE_OLLAMA_TIMEOUT")
            or ollama_section.get("timeout", OLLAMA_TIMEOUT)
        ),
    )

    return config


def _get_provider_type(value: Optional[str]) -> Optional[ProviderType]:
    """Normalize a provider name; unknown or empty values mean no provider."""
    if not value:
        return None
    value = value.lower().strip()
    if value in ("gemini", "openai", "ollama"):
        return cast(ProviderType, value)
    logger.warning("Unknown LLM provider %r; verifier will run offline", value)
    return None


def get_example_config() -> str:
    """Return example config.toml content with documented options."""
    return """# flowgate - verifier LLM configuration
# Place this file at ~/.flowgate/config.toml

[llm]
# Available providers: "gemini", "openai", "ollama"
provider = "openai"

[llm.gemini]
# API key (or set FLOWGATE_GEMINI_API_KEY / GOOGLE_API_KEY env var)
api_key = ""
default_model = "gemini-2.0-flash"
timeout = 30.0

[llm.openai]
# API key (or set FLOWGATE_OPENAI_API_KEY / OPENAI_API_KEY env var)
api_key = ""
default_model = "gpt-4o-mini"
timeout = 30.0
# base_url = "https://your-resource.openai.azure.com/"

[llm.ollama]
base_url = "http://localhost:11434"
default_model = "llama3.2"
timeout = 120.0
"""
