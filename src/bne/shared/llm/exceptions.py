"""LLM provider exceptions."""


class LLMError(Exception):
    """Base exception for LLM provider errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached or keeps timing out."""
    pass


class LLMAuthError(LLMError):
    """Raised when the provider rejects the credentials."""
    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limiting persists after all retries."""
    pass


class LLMResponseError(LLMError):
    """Raised when the provider returns an error for the request itself."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
