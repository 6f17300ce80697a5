"""LLM manager: provider factory and process-wide accessor."""

import threading
from typing import Optional

from .config import LLMConfig, load_config
from .provider import LLMProvider


class LLMManager:
    """Builds the configured provider lazily, on first use."""

    def __init__(self, config: Optional[LLMConfig] = None) -> None:
        self._config = config
        self._provider: Optional[LLMProvider] = None

    @property
    def config(self) -> LLMConfig:
        if self._config is None:
            self._config = load_config()
        return self._config

    def get_provider(self) -> Optional[LLMProvider]:
        """Return the configured provider, or None if none is usable."""
        if self._provider is not None:
            return self._provider

        provider_type = self.config.provider

        if provider_type == "gemini":
            from .gemini import GeminiProvider

            if not self.config.gemini.api_key:
                return None
            self._provider = GeminiProvider(
                api_key=self.config.gemini.api_key,
                default_model=self.config.gemini.default_model,
                timeout=self.config.gemini.timeout,
            )

        elif provider_type == "openai":
            from .openai import OpenAIProvider

            if not self.config.openai.api_key:
                return None
            self._provider = OpenAIProvider(
                api_key=self.config.openai.api_key,
                default_model=self.config.openai.default_model,
                base_url=self.config.openai.base_url or None,
                timeout=self.config.openai.timeout,
            )

        elif provider_type == "ollama":
            from .ollama import OllamaProvider

            self._provider = OllamaProvider(
                base_url=self.config.ollama.base_url,
                default_model=self.config.ollama.default_model,
                timeout=self.config.ollama.timeout,
            )

        return self._provider


_manager: Optional[LLMManager] = None
_manager_lock = threading.Lock()


def _get_manager() -> LLMManager:
    """Get the global LLM manager instance (double-checked locking)."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = LLMManager()
    return _manager


def reset_manager() -> None:
    """Drop the cached manager (tests, config reload)."""
    global _manager
    with _manager_lock:
        _manager = None


def get_provider() -> Optional[LLMProvider]:
    """Get the currently configured LLM provider, or None if not configured."""
    return _get_manager().get_provider()
