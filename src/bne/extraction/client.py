"""Extraction client: verse text in, normalized (name, type) pairs out."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from bne.errors import ExtractionParseError, ExtractionServiceError
from bne.shared.llm import LLMError, LLMProvider
from bne.types import ExtractedName

from .normalize import normalize
from .parsing import parse_names_response
from .prompts import build_system_prompt

logger = logging.getLogger(__name__)


@runtime_checkable
class NameExtractor(Protocol):
    """Anything that can extract names from a verse."""

    def extract(
        self,
        text: str,
        preceding_context: str | None = None,
        provider_override: str | None = None,
    ) -> list[ExtractedName]:
        ...


class ExtractionClient:
    """Calls an LLM provider and turns its answer into ``ExtractedName`` values.

    The provider is fixed at construction time. ``provider_override`` picks
    another member of the closed provider set through ``provider_factory``;
    built providers are kept for the lifetime of the client.
    """

    def __init__(
        self,
        provider: LLMProvider,
        provider_factory: Callable[[str], LLMProvider] | None = None,
    ) -> None:
        self.provider = provider
        self._factory = provider_factory
        self._providers: dict[str, LLMProvider] = {provider.name: provider}

    def _resolve(self, provider_override: str | None) -> LLMProvider:
        if not provider_override or provider_override == self.provider.name:
            return self.provider
        if provider_override not in self._providers:
            if self._factory is None:
                raise ValueError(f"Provider {provider_override!r} is not configured")
            self._providers[provider_override] = self._factory(provider_override)
        return self._providers[provider_override]

    def extract(
        self,
        text: str,
        preceding_context: str | None = None,
        provider_override: str | None = None,
    ) -> list[ExtractedName]:
        """Extract names that occur in ``text``.

        ``preceding_context`` only disambiguates references; names are never
        taken from it.

        Raises:
            ExtractionServiceError: On transport, auth or model failure.
        """
        try:
            provider = self._resolve(provider_override)
            response = provider.generate(
                text,
                system=build_system_prompt(preceding_context),
                json_output=True,
            )
        except LLMError as e:
            raise ExtractionServiceError(str(e)) from e

        logger.debug("[Extract] %s | input=%r | response=%r", provider.name, text[:80], response[:300])

        try:
            raw_entries = parse_names_response(response)
        except ExtractionParseError as e:
            # Never retried; the verse is committed with zero names.
            logger.warning("[Extract] Unparseable response treated as no names: %s", e)
            return []

        return normalize(raw_entries)

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()
