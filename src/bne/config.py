"""Runtime configuration.

Environment Variables:
    BNE_DB_PATH: SQLite database path (default: bible_names.db)
    BNE_CORPUS_DIR: Directory holding _index.json and <book>.json (default: data/bible_data)
    BNE_CORPUS_VERSION: Translation tag used in unit references (default: rv1960)
    BNE_EXCLUDED_COLLECTIONS: Comma-separated book keys to hide (default: none)
    BNE_LOG_FILE: Persist the run log to this file (default: none)
    LLM_PROVIDER: openai | anthropic | ollama (default: openai)
    LLM_MODEL: Model name or alias (default: provider default)
    LLM_TIMEOUT: Request timeout in seconds (default: 90)
    LLM_MAX_RETRIES: Transport retries per request (default: 3)
    OPENAI_API_KEY / OPENAI_BASE_URL: OpenAI credentials and endpoint
    ANTHROPIC_API_KEY: Anthropic credentials
    OLLAMA_URL: Ollama server (default: http://localhost:11434)
    OPENAI_ADMIN_KEY: Admin key for the usage endpoint; budget tracking is off without it
    TOKEN_WARNING_THRESHOLD: Daily tokens before warning (default: 2300000)
    TOKEN_LIMIT_THRESHOLD: Daily tokens before stopping (default: 2500000)
    BUDGET_REFRESH_EVERY: Refresh usage every N newly processed verses (default: 10)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from bne.types import DEFAULT_CORPUS_VERSION

ProviderName = Literal["openai", "anthropic", "ollama"]
PROVIDERS: tuple[str, ...] = ("openai", "anthropic", "ollama")

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-5-mini",
    "anthropic": "claude-haiku-4-5",
    "ollama": "gemma3:12b",
}

DEFAULT_WARNING_THRESHOLD = 2_300_000
DEFAULT_LIMIT_THRESHOLD = 2_500_000
DEFAULT_REFRESH_EVERY = 10


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class Settings:
    """Configuration for the extraction pipeline and the CLI."""

    db_path: Path = Path("bible_names.db")
    corpus_dir: Path = Path("data/bible_data")
    corpus_version: str = DEFAULT_CORPUS_VERSION
    excluded_collections: tuple[str, ...] = field(default_factory=tuple)
    log_file: Path | None = None

    provider: str = "openai"
    model: str | None = None
    timeout: int = 90
    max_retries: int = 3

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_api_key: str | None = None
    ollama_url: str = "http://localhost:11434"
    openai_admin_key: str | None = None

    warning_threshold: int = DEFAULT_WARNING_THRESHOLD
    limit_threshold: int = DEFAULT_LIMIT_THRESHOLD
    refresh_every: int = DEFAULT_REFRESH_EVERY

    @classmethod
    def from_environment(cls) -> "Settings":
        """Create settings from environment variables."""
        config = cls()

        config.db_path = Path(os.getenv("BNE_DB_PATH", str(config.db_path)))
        config.corpus_dir = Path(os.getenv("BNE_CORPUS_DIR", str(config.corpus_dir)))
        config.corpus_version = os.getenv("BNE_CORPUS_VERSION", config.corpus_version)
        config.excluded_collections = _parse_list(os.getenv("BNE_EXCLUDED_COLLECTIONS", ""))
        if log_file := os.getenv("BNE_LOG_FILE"):
            config.log_file = Path(log_file)

        config.provider = os.getenv("LLM_PROVIDER", config.provider).lower()
        config.model = os.getenv("LLM_MODEL") or None
        if timeout := os.getenv("LLM_TIMEOUT"):
            config.timeout = int(timeout)
        if retries := os.getenv("LLM_MAX_RETRIES"):
            config.max_retries = int(retries)

        config.openai_api_key = os.getenv("OPENAI_API_KEY")
        config.openai_base_url = os.getenv("OPENAI_BASE_URL", config.openai_base_url)
        config.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")
        config.ollama_url = os.getenv("OLLAMA_URL", config.ollama_url)
        config.openai_admin_key = os.getenv("OPENAI_ADMIN_KEY")

        if warning := os.getenv("TOKEN_WARNING_THRESHOLD"):
            config.warning_threshold = int(warning)
        if limit := os.getenv("TOKEN_LIMIT_THRESHOLD"):
            config.limit_threshold = int(limit)
        if every := os.getenv("BUDGET_REFRESH_EVERY"):
            config.refresh_every = int(every)

        return config

    def model_for(self, provider: str) -> str:
        if provider == self.provider and self.model:
            return self.model
        return DEFAULT_MODELS[provider]

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider {self.provider!r}, expected one of {PROVIDERS}")
        if self.warning_threshold >= self.limit_threshold:
            raise ValueError("TOKEN_WARNING_THRESHOLD must be lower than TOKEN_LIMIT_THRESHOLD")
        if self.refresh_every < 1:
            raise ValueError("BUDGET_REFRESH_EVERY must be at least 1")
        if self.timeout <= 0:
            raise ValueError("LLM_TIMEOUT must be positive")
        if self.max_retries < 1:
            raise ValueError("LLM_MAX_RETRIES must be at least 1")
        if not self.corpus_version or "-" in self.corpus_version:
            raise ValueError("BNE_CORPUS_VERSION must be non-empty and may not contain '-'")
