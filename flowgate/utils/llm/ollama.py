"""Ollama LLM provider using httpx for API calls."""

import logging
from typing import Any, Optional

import httpx

from .constants import DEFAULT_MODELS, JSON_ONLY_SUFFIX, OLLAMA_TIMEOUT
from .json_parser import parse_json_response
from .provider import LLMProvider

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """LLM provider for Ollama local models.

    Talks to the Ollama server's /api/generate endpoint directly.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        default_model: str = DEFAULT_MODELS["ollama"],
        timeout: float = OLLAMA_TIMEOUT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_model = default_model
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _post_generate(self, body: dict[str, Any]) -> Optional[str]:
        response = httpx.post(
            f"{self._base_url}/api/generate",
            json=body,
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json().get("response")

    def generate_json(
        self,
        system: str,
        prompt: str,
        model: str | None = None,
        sanitize: bool = True,
    ) -> Optional[dict[str, Any]]:
        """Generate JSON using Ollama's native format mode, then without it."""
        text = self._sanitize_prompt(prompt) if sanitize else prompt
        body: dict[str, Any] = {
            "model": model or self._default_model,
            "system": f"{system}\n\n{JSON_ONLY_SUFFIX}",
            "prompt": text,
            "stream": False,
        }

        try:
            raw = self._post_generate({**body, "format": "json"})
            if raw:
                return parse_json_response(raw)
        except httpx.HTTPError as e:
            logger.debug("Ollama JSON mode failed, trying without: %s", e)
            try:
                raw = self._post_generate(body)
                if raw:
                    return parse_json_response(raw)
            except httpx.HTTPError as e2:
                logger.debug("Ollama fallback generation failed: %s", e2)

        return None
