"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .constants import MAX_PROMPT_LENGTH


class LLMProvider(ABC):
    """Common interface for the Gemini, OpenAI and Ollama backends.

    Implementations return None on any transport or parse failure; callers
    decide what a missing answer means.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'gemini', 'openai', 'ollama')."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        ...

    @abstractmethod
    def generate_json(
        self,
        system: str,
        prompt: str,
        model: str | None = None,
        sanitize: bool = True,
    ) -> Optional[dict[str, Any]]:
        """Generate a JSON object completion.

        Args:
            system: Instructions describing the task and the JSON contract.
            prompt: The user content to evaluate.
            model: Model to use (defaults to provider's default_model).
            sanitize: If True, truncate prompt to max safe length.

        Returns:
            Parsed JSON dict, or None on error/parse failure.
        """
        ...

    def _sanitize_prompt(self, prompt: str, max_length: int = MAX_PROMPT_LENGTH) -> str:
        return prompt[:max_length] if len(prompt) > max_length else prompt
