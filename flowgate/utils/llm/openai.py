"""OpenAI LLM provider using the openai SDK."""

import logging
from typing import Any, Optional

from openai import OpenAI

from .constants import DEFAULT_API_TIMEOUT, DEFAULT_MODELS, JSON_ONLY_SUFFIX
from .json_parser import parse_json_response
from .provider import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider for OpenAI models.

    Also supports Azure OpenAI and other OpenAI-compatible endpoints via
    base_url.
    """

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODELS["openai"],
        base_url: str | None = None,
        timeout: float = DEFAULT_API_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._default_model = default_model
        self._base_url = base_url
        self._timeout = timeout
        self._client: Any = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            kwargs: dict[str, Any] = {
                "api_key": self._api_key,
                "timeout": self._timeout,
                "max_retries": 0,
            }
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = OpenAI(**kwargs)
        return self._client

    def generate_json(
        self,
        system: str,
        prompt: str,
        model: str | None = None,
        sanitize: bool = True,
    ) -> Optional[dict[str, Any]]:
        """Generate JSON using OpenAI's native JSON mode when available."""
        client = self._get_client()
        text = self._sanitize_prompt(prompt) if sanitize else prompt
        messages = [
            {"role": "system", "content": f"{system}\n\n{JSON_ONLY_SUFFIX}"},
            {"role": "user", "content": text},
        ]
        model_name = model or self._default_model

        try:
            response = client.chat.completions.create(
                model=model_name,
                messages=messages,
                response_format={"type": "json_object"},
            )
            if response.choices and response.choices[0].message.content:
                return parse_json_response(response.choices[0].message.content)
        except Exception as e:
            logger.debug("OpenAI JSON mode failed, trying without: %s", e)
            try:
                response = client.chat.completions.create(
                    model=model_name,
                    messages=messages,
                )
                if response.choices and response.choices[0].message.content:
                    return parse_json_response(response.choices[0].message.content)
            except Exception as e2:
                logger.debug("OpenAI fallback generation failed: %s", e2)

        return None
