from datetime import datetime, timedelta, timezone

import pytest

from skillsync.common.cache import RATE_LIMIT_METRICS_KEY
from skillsync.common.rate_limit import (
    DEFAULT_REMAINING,
    RateLimit,
    RateLimitMetrics,
    RateLimitPause,
    RateLimitTracker,
    calculate_threshold,
    smooth_average,
)

NOW = datetime(2025, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_rate_limit_from_graphql():
    rate_limit = RateLimit.from_graphql(
        {"rateLimit": {"remaining": 321, "cost": 2, "resetAt": "2025-10-19T13:00:00Z"}}
    )
    assert rate_limit.remaining == 321
    assert rate_limit.cost == 2
    assert rate_limit.reset_at == datetime(2025, 10, 19, 13, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "data",
    [None, {}, {"rateLimit": None}, {"repository": {"name": "x"}}],
)
def test_rate_limit_from_graphql_defaults(data):
    before = datetime.now(timezone.utc)
    rate_limit = RateLimit.from_graphql(data)

    assert rate_limit.remaining == DEFAULT_REMAINING
    assert rate_limit.cost == 1
    assert rate_limit.reset_at >= before + timedelta(minutes=59)


def test_rate_limit_from_graphql_bad_reset():
    rate_limit = RateLimit.from_graphql(
        {"rateLimit": {"remaining": 10, "cost": 1, "resetAt": "soon"}}
    )
    assert rate_limit.remaining == 10
    assert rate_limit.reset_at > datetime.now(timezone.utc)


@pytest.mark.parametrize(
    "avg, total, processed, expected",
    [
        (12, 100, 0, 500),  # clamped to max
        (12, 10, 0, 120),
        (12, 10, 8, 50),  # clamped to min
        (12, 10, 10, 50),
        (12, 10, 20, 50),  # more processed than total
        (2.5, 100, 0, 250),
    ],
)
def test_calculate_threshold(avg, total, processed, expected):
    metrics = RateLimitMetrics(avg_requests_per_repo=avg)
    assert calculate_threshold(metrics, total, processed) == expected


@pytest.mark.parametrize(
    "previous, requests, repos, alpha, expected",
    [
        (10.0, 200, 10, 0.3, 0.3 * 20 + 0.7 * 10),
        (10.0, 0, 10, 0.3, 7.0),
        (10.0, 50, 0, 0.3, 10.0),  # nothing processed, keep previous
        (12.0, 60, 5, 1.0, 12.0),
    ],
)
def test_smooth_average(previous, requests, repos, alpha, expected):
    assert smooth_average(previous, requests, repos, alpha) == pytest.approx(expected)


def test_metrics_from_payload_missing():
    metrics = RateLimitMetrics.from_payload(None)
    assert metrics.avg_requests_per_repo == 12
    assert metrics.last_run_repo_count == 0


def test_metrics_payload_roundtrip():
    metrics = RateLimitMetrics(
        avg_requests_per_repo=7.5,
        last_run_repo_count=40,
        last_run_request_count=300,
        updated_at="2025-10-19T00:00:00+00:00",
    )
    assert RateLimitMetrics.from_payload(metrics.to_payload()) == metrics


def test_tracker_loads_stored_metrics(cache):
    cache.put_json(RATE_LIMIT_METRICS_KEY, {"avg_requests_per_repo": 4})
    tracker = RateLimitTracker(cache, "run-1")
    assert tracker.metrics.avg_requests_per_repo == 4
    assert tracker.threshold(100, 0) == 400


def test_tracker_check_passes_with_budget(cache):
    tracker = RateLimitTracker(cache, "run-1")
    rate_limit = RateLimit(remaining=4000, cost=1, reset_at=NOW + timedelta(hours=1))
    tracker.check(rate_limit, 10, 0, now=NOW)


def test_tracker_check_pauses_until_reset(cache):
    tracker = RateLimitTracker(cache, "run-1")
    reset_at = NOW + timedelta(minutes=20)
    rate_limit = RateLimit(remaining=30, cost=1, reset_at=reset_at)

    with pytest.raises(RateLimitPause) as exc:
        tracker.check(rate_limit, 10, 0, now=NOW)

    assert exc.value.resume_at == reset_at + timedelta(seconds=1)
    assert exc.value.remaining == 30


def test_tracker_check_ignores_reset_in_the_past(cache):
    tracker = RateLimitTracker(cache, "run-1")
    rate_limit = RateLimit(remaining=0, cost=1, reset_at=NOW - timedelta(seconds=5))
    tracker.check(rate_limit, 10, 0, now=NOW)


def test_tracker_records_cost(cache):
    tracker = RateLimitTracker(cache, "run-1")
    reset_at = datetime.now(timezone.utc) + timedelta(hours=1)
    tracker.after_call(RateLimit(remaining=4000, cost=1, reset_at=reset_at), 1, 0)
    tracker.after_call(RateLimit(remaining=3999, cost=3, reset_at=reset_at), 1, 0)

    assert tracker.spent() == 4


def test_tracker_cost_survives_restart(cache):
    reset_at = datetime.now(timezone.utc) + timedelta(hours=1)
    RateLimitTracker(cache, "run-1").record(
        RateLimit(remaining=4000, cost=5, reset_at=reset_at)
    )
    assert RateLimitTracker(cache, "run-1").spent() == 5
    assert RateLimitTracker(cache, "run-2").spent() == 0


def test_tracker_after_call_records_before_pausing(cache):
    tracker = RateLimitTracker(cache, "run-1")
    reset_at = datetime.now(timezone.utc) + timedelta(hours=1)

    with pytest.raises(RateLimitPause):
        tracker.after_call(RateLimit(remaining=1, cost=2, reset_at=reset_at), 10, 0)
    assert tracker.spent() == 2


def test_tracker_finish_updates_average(cache):
    tracker = RateLimitTracker(cache, "run-1")
    reset_at = datetime.now(timezone.utc) + timedelta(hours=1)
    tracker.record(RateLimit(remaining=4000, cost=200, reset_at=reset_at))

    metrics = tracker.finish(10)

    assert metrics.avg_requests_per_repo == pytest.approx(0.3 * 20 + 0.7 * 12)
    assert metrics.last_run_repo_count == 10
    assert metrics.last_run_request_count == 200
    assert cache.get_json(RATE_LIMIT_METRICS_KEY)["last_run_request_count"] == 200
    assert tracker.spent() == 0
