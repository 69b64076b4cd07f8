"""Usage accounting collaborators.

``OpenAIUsageClient`` reads the organization completions usage endpoint with
an admin key. ``NullAccountingClient`` reports zero usage and is used when
no admin key is configured, which effectively disables the budget limit.

Environment Variables:
    OPENAI_ADMIN_KEY: Admin API key; NullAccountingClient is used when unset
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bne.errors import AccountingServiceError

if TYPE_CHECKING:
    from bne.config import Settings

logger = logging.getLogger(__name__)

USAGE_PATH = "/organization/usage/completions"
MAX_PAGES = 20


class UsageBucket(BaseModel):
    """Aggregated counts for one result row of one time bucket."""
    model_config = ConfigDict(extra="ignore")

    input_tokens: int = 0
    output_tokens: int = 0
    num_model_requests: int = 0


class _ApiBucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[UsageBucket] = Field(default_factory=list)


class _ApiPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[_ApiBucket] = Field(default_factory=list)
    has_more: bool = False
    next_page: str | None = None


class DailyUsage(BaseModel):
    buckets: list[UsageBucket] = Field(default_factory=list)


@runtime_checkable
class AccountingClient(Protocol):
    """Protocol for usage accounting sources."""

    def get_daily_usage(self, since: datetime) -> DailyUsage:
        """Return usage buckets from ``since`` (UTC midnight) until now.

        Raises:
            AccountingServiceError: If usage cannot be read.
        """
        ...


class NullAccountingClient:
    """No-op accounting: always reports zero usage."""

    def get_daily_usage(self, since: datetime) -> DailyUsage:
        logger.debug("[NullAccounting] No admin key configured, reporting zero usage")
        return DailyUsage()

    def close(self) -> None:
        pass


class OpenAIUsageClient:
    """OpenAI organization usage API (completions)."""

    def __init__(
        self,
        admin_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        bucket_limit: int = 10,
        client: httpx.Client | None = None,
    ) -> None:
        self._admin_key = admin_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.bucket_limit = bucket_limit
        self._client = client or httpx.Client()

    def _fetch_page(self, params: dict[str, str | int]) -> _ApiPage:
        try:
            response = self._client.get(
                f"{self.base_url}{USAGE_PATH}",
                params=params,
                headers={
                    "Authorization": f"Bearer {self._admin_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise AccountingServiceError(None, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error("[Usage] API error %d: %s", response.status_code, response.text[:300])
            raise AccountingServiceError(response.status_code, response.text)

        try:
            return _ApiPage.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AccountingServiceError(response.status_code, f"Malformed usage payload: {e}") from e

    def get_daily_usage(self, since: datetime) -> DailyUsage:
        params: dict[str, str | int] = {
            "start_time": int(since.timestamp()),
            "limit": self.bucket_limit,
        }
        buckets: list[UsageBucket] = []
        for _ in range(MAX_PAGES):
            page = self._fetch_page(params)
            for bucket in page.data:
                buckets.extend(bucket.results)
            if not page.has_more or not page.next_page:
                break
            params["page"] = page.next_page
        else:
            logger.warning("[Usage] Stopped after %d pages; totals may be low", MAX_PAGES)

        return DailyUsage(buckets=buckets)

    def close(self) -> None:
        self._client.close()


def create_accounting_client(settings: "Settings") -> AccountingClient:
    """Create an accounting client based on configuration."""
    if not settings.openai_admin_key:
        logger.debug("[Usage] OPENAI_ADMIN_KEY not set, budget tracking disabled")
        return NullAccountingClient()
    return OpenAIUsageClient(settings.openai_admin_key, base_url=settings.openai_base_url)
