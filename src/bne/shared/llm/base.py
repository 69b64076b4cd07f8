"""Provider base class and the shared HTTP retry loop."""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import (
    LLMAuthError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMResponseError,
)

if TYPE_CHECKING:
    from bne.config import Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Retry configuration
# ---------------------------------------------------------------------------

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 1.0
DEFAULT_MAX_BACKOFF = 60.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
JITTER_FACTOR = 0.1
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 529}
AUTH_STATUS_CODES = {401, 403}


class LLMProvider(ABC):
    """A chat-style completion endpoint.

    Subclasses build the request body and pull the text out of the response;
    transport, retries and error mapping live here.
    """

    default_model: str = ""

    def __init__(
        self,
        model: str | None = None,
        timeout: int = 90,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: httpx.Client | None = None,
        sleep: Any = time.sleep,
    ) -> None:
        self.model = model or self.default_model
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client or httpx.Client()
        self._sleep = sleep

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system: str | None = None,
        json_output: bool = True,
        max_tokens: int = 2000,
    ) -> str:
        """Return the completion text ("" when the model produced none).

        Raises:
            LLMError: On transport, auth or provider-side failure.
        """
        ...

    def close(self) -> None:
        self._client.close()

    # -- retry helpers ------------------------------------------------------

    @staticmethod
    def _calculate_backoff(attempt: int, retry_after: float | None) -> float:
        if retry_after is not None:
            return min(retry_after, DEFAULT_MAX_BACKOFF)
        backoff = DEFAULT_INITIAL_BACKOFF * (DEFAULT_BACKOFF_MULTIPLIER ** attempt)
        backoff = min(backoff, DEFAULT_MAX_BACKOFF)
        jitter = backoff * JITTER_FACTOR * random.random()
        return backoff + jitter

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> float | None:
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return None

    def _post_json(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        """POST with bounded retries on throttling, 5xx, timeouts and dropped connections."""
        start_time = time.time()
        last_status: int | None = None

        for attempt in range(self.max_retries):
            try:
                response = self._client.post(url, json=body, headers=headers, timeout=self.timeout)
            except httpx.TimeoutException as e:
                if attempt < self.max_retries - 1:
                    backoff = self._calculate_backoff(attempt, None)
                    logger.info(
                        "[%s] RETRY timeout | attempt=%d/%d | wait=%.1fs",
                        self.name, attempt + 1, self.max_retries, backoff,
                    )
                    self._sleep(backoff)
                    continue
                raise LLMConnectionError(
                    f"{self.name}: timed out after {self.max_retries} attempts"
                ) from e
            except httpx.TransportError as e:
                if attempt < self.max_retries - 1:
                    backoff = self._calculate_backoff(attempt, None)
                    logger.info(
                        "[%s] RETRY connection error | attempt=%d/%d | error=%s: %s | wait=%.1fs",
                        self.name, attempt + 1, self.max_retries, type(e).__name__, e, backoff,
                    )
                    self._sleep(backoff)
                    continue
                raise LLMConnectionError(f"{self.name}: {type(e).__name__}: {e}") from e

            elapsed = time.time() - start_time

            if response.status_code in RETRYABLE_STATUS_CODES:
                last_status = response.status_code
                if attempt < self.max_retries - 1:
                    backoff = self._calculate_backoff(attempt, self._parse_retry_after(response))
                    logger.info(
                        "[%s] RETRY %d | attempt=%d/%d | model=%s | wait=%.1fs | elapsed=%.1fs",
                        self.name, response.status_code, attempt + 1, self.max_retries,
                        self.model, backoff, elapsed,
                    )
                    self._sleep(backoff)
                    continue
                break

            if response.status_code in AUTH_STATUS_CODES:
                logger.error("[%s] AUTH FAILED %d", self.name, response.status_code)
                raise LLMAuthError(f"{self.name}: credentials rejected ({response.status_code})")

            if not response.is_success:
                error_text = response.text[:300]
                logger.error(
                    "[%s] FAILED %d | model=%s | elapsed=%.1fs | %s",
                    self.name, response.status_code, self.model, elapsed, error_text,
                )
                raise LLMResponseError(
                    f"{self.name}: {response.status_code} {error_text}",
                    status_code=response.status_code,
                )

            if attempt > 0:
                logger.info(
                    "[%s] RECOVERED after %d retries | model=%s | total=%.1fs",
                    self.name, attempt, self.model, elapsed,
                )
            try:
                return response.json()
            except ValueError as e:
                raise LLMResponseError(f"{self.name}: response body is not JSON") from e

        logger.error("[%s] EXHAUSTED %d retries | model=%s", self.name, self.max_retries, self.model)
        if last_status == 429:
            raise LLMRateLimitError(f"{self.name}: still rate limited after {self.max_retries} attempts")
        raise LLMConnectionError(
            f"{self.name}: provider unavailable ({last_status}) after {self.max_retries} attempts"
        )


def get_provider(
    name: str,
    settings: "Settings",
    client: httpx.Client | None = None,
) -> LLMProvider:
    """Build the provider ``name`` from settings.

    The set of providers is closed; unknown names raise ``ValueError``.
    """
    from .anthropic_provider import AnthropicProvider
    from .ollama_provider import OllamaProvider
    from .openai_provider import OpenAIProvider

    if name not in ("openai", "anthropic", "ollama"):
        raise ValueError(f"Unknown LLM provider: {name!r}")

    common = {
        "model": settings.model_for(name),
        "timeout": settings.timeout,
        "max_retries": settings.max_retries,
        "client": client,
    }
    if name == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key, base_url=settings.openai_base_url, **common
        )
    if name == "anthropic":
        return AnthropicProvider(api_key=settings.anthropic_api_key, **common)
    return OllamaProvider(base_url=settings.ollama_url, **common)
