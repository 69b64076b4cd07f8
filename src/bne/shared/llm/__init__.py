"""LLM provider abstraction."""
from .base import get_provider, LLMProvider
from .anthropic_provider import AnthropicProvider
from .exceptions import (
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
)
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "get_provider",
    "LLMProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "LLMError",
    "LLMAuthError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMResponseError",
]
