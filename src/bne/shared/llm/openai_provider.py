"""OpenAI chat completions provider.

Uses JSON mode (``response_format=json_object``). The default model only
accepts its default temperature, so none is sent.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .base import LLMProvider
from .exceptions import LLMAuthError

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI provider authenticated with OPENAI_API_KEY."""

    default_model = "gpt-5-mini"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        **kwargs: Any,
    ) -> None:
        if not api_key:
            raise LLMAuthError("OPENAI_API_KEY is not set")
        super().__init__(**kwargs)
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "openai"

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        json_output: bool = True,
        max_tokens: int = 2000,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request_body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_completion_tokens": max_tokens,
        }
        if json_output:
            request_body["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        logger.debug("[openai] model=%s prompt_len=%d", self.model, len(prompt))
        data = self._post_json(f"{self.base_url}/chat/completions", request_body, headers)

        usage = data.get("usage") or {}
        logger.debug(
            "[openai] OK | model=%s | in=%d out=%d",
            self.model,
            usage.get("prompt_tokens", 0),
            usage.get("completion_tokens", 0),
        )

        choices = data.get("choices") or []
        if not choices:
            logger.warning("[openai] Unexpected response: %s", json.dumps(data)[:500])
            return ""
        content = (choices[0].get("message") or {}).get("content")
        return (content or "").strip()
