"""Anthropic (Claude) provider using the Messages API with an API key.

Authentication: set ANTHROPIC_API_KEY. Claude has no JSON response mode, so
``json_output`` only adds a short instruction to the system prompt.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .base import LLMProvider
from .exceptions import LLMAuthError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Model aliases
# ---------------------------------------------------------------------------

MODEL_MAP: dict[str, str] = {
    "claude-haiku": "claude-haiku-4-5",
    "haiku": "claude-haiku-4-5",
    "claude-sonnet": "claude-sonnet-4-5",
    "sonnet": "claude-sonnet-4-5",
    "claude-opus": "claude-opus-4-1",
    "opus": "claude-opus-4-1",
}

_JSON_SUFFIX = "\n\nResponde únicamente con el objeto JSON, sin texto adicional."


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider."""

    API_ENDPOINT = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    default_model = "claude-haiku-4-5"

    def __init__(self, api_key: str | None = None, **kwargs: Any) -> None:
        if not api_key:
            raise LLMAuthError("ANTHROPIC_API_KEY is not set")
        super().__init__(**kwargs)
        self._api_key = api_key
        self.model = self._resolve_model(self.model)

    @property
    def name(self) -> str:
        return "anthropic"

    @staticmethod
    def _resolve_model(model: str) -> str:
        resolved = MODEL_MAP.get(model, model)
        if resolved != model:
            logger.debug("Model alias: %s -> %s", model, resolved)
        return resolved

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        json_output: bool = True,
        max_tokens: int = 2000,
    ) -> str:
        logger.debug("[anthropic] model=%s prompt_len=%d", self.model, len(prompt))

        request_body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": 0.0,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system or json_output:
            request_body["system"] = (system or "") + (_JSON_SUFFIX if json_output else "")

        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

        data = self._post_json(self.API_ENDPOINT, request_body, headers)

        usage = data.get("usage", {})
        logger.debug(
            "[anthropic] OK | model=%s | in=%d out=%d",
            self.model,
            usage.get("input_tokens", 0),
            usage.get("output_tokens", 0),
        )

        text_parts = [
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        ]
        if text_parts:
            return "\n".join(text_parts).strip()

        logger.warning("[anthropic] Unexpected response: %s", json.dumps(data)[:500])
        return ""
