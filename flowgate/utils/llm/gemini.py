"""Gemini LLM provider using the google-genai SDK."""

import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS, JSON_ONLY_SUFFIX
from .json_parser import parse_json_response
from .provider import LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """LLM provider for Google Gemini models."""

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODELS["gemini"],
        timeout: float = DEFAULT_API_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._default_model = default_model
        self._timeout = timeout
        self._client: Any = None

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_client(self) -> Any:
        """Get or create the Gemini client (timeout is in milliseconds)."""
        if self._client is None:
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
        return self._client

    def generate_json(
        self,
        system: str,
        prompt: str,
        model: str | None = None,
        sanitize: bool = True,
    ) -> Optional[dict[str, Any]]:
        client = self._get_client()
        text = self._sanitize_prompt(prompt) if sanitize else prompt

        try:
            response = client.models.generate_content(
                model=model or self._default_model,
                contents=text,
                config=types.GenerateContentConfig(
                    system_instruction=f"{system}\n\n{JSON_ONLY_SUFFIX}",
                    response_mime_type="application/json",
                ),
            )
            if response and response.text:
                return parse_json_response(response.text)
        except Exception as e:
            logger.debug("Gemini generation failed: %s: %s", type(e).__name__, e)

        return None
