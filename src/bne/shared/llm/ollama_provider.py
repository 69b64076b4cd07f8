"""Local Ollama provider (gemma and friends)."""

from __future__ import annotations

import logging
from typing import Any

from .base import LLMProvider

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """Ollama ``/api/chat`` endpoint, non-streaming."""

    default_model = "gemma3:12b"

    def __init__(self, base_url: str = "http://localhost:11434", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "ollama"

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
            "stream": False,
            "options": {"temperature": 0.0, "num_predict": max_tokens},
        }
        if json_output:
            request_body["format"] = "json"

        data = self._post_json(f"{self.base_url}/api/chat", request_body, {})
        logger.debug(
            "[ollama] OK | model=%s | in=%d out=%d",
            self.model,
            data.get("prompt_eval_count", 0),
            data.get("eval_count", 0),
        )
        return ((data.get("message") or {}).get("content") or "").strip()
