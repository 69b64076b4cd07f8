"""Tests for the daily token budget tracker."""
from datetime import date, datetime, timezone

import pytest

from bne.errors import AccountingServiceError
from bne.usage import UsageBudgetTracker, utc_midnight

from conftest import FakeAccounting


def fixed_clock():
    return datetime(2024, 3, 10, 17, 45, 12, tzinfo=timezone.utc)


def make_tracker(*results, warning=100, limit=200):
    return UsageBudgetTracker(
        FakeAccounting(*results), warning_threshold=warning, limit_threshold=limit, clock=fixed_clock,
    )


def test_utc_midnight_converts_timezone():
    from datetime import timedelta

    local = datetime(2024, 3, 10, 1, 30, tzinfo=timezone(timedelta(hours=3)))
    assert utc_midnight(local) == datetime(2024, 3, 9, tzinfo=timezone.utc)


def test_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        make_tracker(0, warning=200, limit=200)


def test_no_snapshot_means_proceed():
    tracker = make_tracker(0)
    assert tracker.current_total() == 0
    assert tracker.can_proceed()
    assert not tracker.is_at_warning()


def test_refresh_sums_buckets():
    class MultiBucket(FakeAccounting):
        def get_daily_usage(self, since):
            from bne.usage import DailyUsage, UsageBucket

            self.since = since
            return DailyUsage(buckets=[
                UsageBucket(input_tokens=10, output_tokens=5, num_model_requests=2),
                UsageBucket(input_tokens=20, output_tokens=1, num_model_requests=3),
            ])

    accounting = MultiBucket()
    tracker = UsageBudgetTracker(accounting, clock=fixed_clock)

    snapshot = tracker.refresh()

    assert accounting.since == datetime(2024, 3, 10, tzinfo=timezone.utc)
    assert snapshot.as_of_date == date(2024, 3, 10)
    assert (snapshot.input_units, snapshot.output_units, snapshot.request_count) == (30, 6, 5)
    assert snapshot.total_units == 36


@pytest.mark.parametrize("total, warning, limit, proceed", [
    (99, False, False, True),
    (100, True, False, True),
    (199, True, False, True),
    (200, False, True, False),
    (500, False, True, False),
])
def test_threshold_states(total, warning, limit, proceed):
    tracker = make_tracker(total)
    tracker.refresh()

    assert tracker.is_at_warning() is warning
    assert tracker.is_at_limit() is limit
    assert tracker.can_proceed() is proceed


def test_failed_refresh_keeps_previous_snapshot():
    tracker = make_tracker(150, AccountingServiceError(500, "boom"))
    first = tracker.refresh()

    with pytest.raises(AccountingServiceError):
        tracker.refresh()

    assert tracker.snapshot == first
    assert tracker.last_error is not None
    assert tracker.is_at_warning()


def test_successful_refresh_clears_last_error():
    tracker = make_tracker(AccountingServiceError(None, "timeout"), 10)
    with pytest.raises(AccountingServiceError):
        tracker.refresh()

    tracker.refresh()

    assert tracker.last_error is None
    assert tracker.current_total() == 10
