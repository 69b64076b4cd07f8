"""Daily token budget, consulted before every extraction call.

Budget tracking is advisory: when the accounting endpoint fails the last
known snapshot stays in force and processing carries on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from bne.config import DEFAULT_LIMIT_THRESHOLD, DEFAULT_WARNING_THRESHOLD
from bne.errors import AccountingServiceError
from bne.types import BudgetSnapshot

from .accounting import AccountingClient

logger = logging.getLogger(__name__)


def utc_midnight(now: datetime) -> datetime:
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UsageBudgetTracker:
    """Tracks today's consumption against a warning and a hard limit."""

    def __init__(
        self,
        accounting: AccountingClient,
        warning_threshold: int = DEFAULT_WARNING_THRESHOLD,
        limit_threshold: int = DEFAULT_LIMIT_THRESHOLD,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if warning_threshold >= limit_threshold:
            raise ValueError(
                f"warning_threshold ({warning_threshold}) must be below "
                f"limit_threshold ({limit_threshold})"
            )
        self.accounting = accounting
        self.warning_threshold = warning_threshold
        self.limit_threshold = limit_threshold
        self._clock = clock
        self.snapshot: BudgetSnapshot | None = None
        self.last_error: AccountingServiceError | None = None

    def refresh(self) -> BudgetSnapshot:
        """Replace the snapshot with usage since the start of the UTC day.

        Raises:
            AccountingServiceError: The previous snapshot is kept.
        """
        since = utc_midnight(self._clock())
        try:
            usage = self.accounting.get_daily_usage(since)
        except AccountingServiceError as e:
            self.last_error = e
            logger.warning("[Budget] Refresh failed, keeping last snapshot: %s", e)
            raise

        snapshot = BudgetSnapshot(
            as_of_date=since.date(),
            input_units=sum(b.input_tokens for b in usage.buckets),
            output_units=sum(b.output_tokens for b in usage.buckets),
            request_count=sum(b.num_model_requests for b in usage.buckets),
        )
        self.snapshot = snapshot
        self.last_error = None
        logger.info(
            "[Budget] %s: %d tokens (%d in / %d out), %d requests",
            snapshot.as_of_date, snapshot.total_units, snapshot.input_units,
            snapshot.output_units, snapshot.request_count,
        )
        if self.is_at_limit():
            logger.warning("[Budget] Limit of %d tokens reached", self.limit_threshold)
        elif self.is_at_warning():
            logger.warning("[Budget] Warning threshold of %d tokens reached", self.warning_threshold)
        return snapshot

    def current_total(self) -> int:
        return self.snapshot.total_units if self.snapshot else 0

    def is_at_warning(self) -> bool:
        return self.warning_threshold <= self.current_total() < self.limit_threshold

    def is_at_limit(self) -> bool:
        return self.current_total() >= self.limit_threshold

    def can_proceed(self) -> bool:
        return not self.is_at_limit()
