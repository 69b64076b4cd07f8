"""Usage accounting and the daily token budget."""
from .accounting import (
    AccountingClient,
    DailyUsage,
    NullAccountingClient,
    OpenAIUsageClient,
    UsageBucket,
    create_accounting_client,
)
from .budget import UsageBudgetTracker, utc_midnight

__all__ = [
    "AccountingClient",
    "DailyUsage",
    "NullAccountingClient",
    "OpenAIUsageClient",
    "UsageBucket",
    "create_accounting_client",
    "UsageBudgetTracker",
    "utc_midnight",
]
