"""Rate-limit budget tracking and the dynamic stop-and-wait threshold.

GitHub's GraphQL API reports ``{remaining, cost, resetAt}`` with every query.
After each call the scheduler compares ``remaining`` against a threshold sized
to the work still left. When the budget is too low it raises
:class:`RateLimitPause`; the Celery task turns that into a retry scheduled for
the reset time, so the wait survives worker restarts.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from skillsync.common import settings
from skillsync.common.cache import RATE_LIMIT_METRICS_KEY, KeyValueCache

logger = logging.getLogger(__name__)

DEFAULT_REMAINING = 5000
RESUME_MARGIN = timedelta(seconds=1)
RUN_COST_TTL = 7 * 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimitPause(Exception):
    """Raised when work must stop until the API quota resets."""

    def __init__(self, resume_at: datetime, remaining: int | None = None):
        self.resume_at = resume_at
        self.remaining = remaining
        super().__init__(f"Rate limit budget low ({remaining}), resume at {resume_at.isoformat()}")


@dataclass
class RateLimit:
    remaining: int
    cost: int
    reset_at: datetime

    @classmethod
    def default(cls) -> "RateLimit":
        return cls(remaining=DEFAULT_REMAINING, cost=1, reset_at=utcnow() + timedelta(hours=1))

    @classmethod
    def from_graphql(cls, data: dict[str, Any] | None) -> "RateLimit":
        """Build from the ``rateLimit`` selection of a GraphQL response."""
        rate_limit = (data or {}).get("rateLimit")
        if not rate_limit:
            return cls.default()

        reset_raw = rate_limit.get("resetAt")
        try:
            reset_at = datetime.fromisoformat(reset_raw.replace("Z", "+00:00"))
        except (AttributeError, ValueError):
            reset_at = utcnow() + timedelta(hours=1)
        return cls(
            remaining=int(rate_limit.get("remaining", DEFAULT_REMAINING)),
            cost=int(rate_limit.get("cost", 1)),
            reset_at=reset_at,
        )


@dataclass
class RateLimitMetrics:
    """Per-run cost statistics kept in the cache between runs."""

    avg_requests_per_repo: float = settings.RATE_LIMIT_DEFAULT_REQUESTS_PER_REPO
    last_run_repo_count: int = 0
    last_run_request_count: int = 0
    updated_at: str = field(default_factory=lambda: utcnow().isoformat())

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "RateLimitMetrics":
        if not payload:
            return cls()
        return cls(
            avg_requests_per_repo=float(
                payload.get(
                    "avg_requests_per_repo",
                    settings.RATE_LIMIT_DEFAULT_REQUESTS_PER_REPO,
                )
            ),
            last_run_repo_count=int(payload.get("last_run_repo_count", 0)),
            last_run_request_count=int(payload.get("last_run_request_count", 0)),
            updated_at=payload.get("updated_at") or utcnow().isoformat(),
        )

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


def calculate_threshold(
    metrics: RateLimitMetrics, total_repos: int, processed_repos: int
) -> int:
    """Remaining-quota level below which the scheduler stops and waits.

    Sized to the estimated cost of the repos still to sync, clamped to
    [RATE_LIMIT_MIN_THRESHOLD, RATE_LIMIT_MAX_THRESHOLD].
    """
    repos_remaining = max(total_repos - processed_repos, 0)
    estimated = repos_remaining * metrics.avg_requests_per_repo
    return int(
        max(
            settings.RATE_LIMIT_MIN_THRESHOLD,
            min(settings.RATE_LIMIT_MAX_THRESHOLD, estimated),
        )
    )


def smooth_average(
    previous: float, requests: int, repos: int, alpha: float | None = None
) -> float:
    if repos <= 0:
        return previous
    alpha = settings.RATE_LIMIT_SMOOTHING if alpha is None else alpha
    observed = requests / repos
    return alpha * observed + (1 - alpha) * previous


class RateLimitTracker:
    """Scheduler state for one workflow instance.

    The spent-cost counter lives in the cache so it survives pauses and
    restarts of the same instance.
    """

    def __init__(
        self,
        cache: KeyValueCache,
        instance_id: str,
        metrics: RateLimitMetrics | None = None,
    ):
        self.cache = cache
        self.instance_id = instance_id
        self.metrics = metrics or self.load_metrics(cache)

    @staticmethod
    def load_metrics(cache: KeyValueCache) -> RateLimitMetrics:
        return RateLimitMetrics.from_payload(cache.get_json(RATE_LIMIT_METRICS_KEY))

    @property
    def _cost_key(self) -> str:
        return f"run-cost:{self.instance_id}"

    def threshold(self, total_repos: int, processed_repos: int) -> int:
        return calculate_threshold(self.metrics, total_repos, processed_repos)

    def record(self, rate_limit: RateLimit) -> int:
        return self.cache.incr(self._cost_key, rate_limit.cost, ttl=RUN_COST_TTL)

    def spent(self) -> int:
        return self.cache.get_int(self._cost_key)

    def check(
        self,
        rate_limit: RateLimit,
        total_repos: int,
        processed_repos: int,
        now: datetime | None = None,
    ) -> None:
        threshold = self.threshold(total_repos, processed_repos)
        now = now or utcnow()
        if rate_limit.remaining < threshold and rate_limit.reset_at > now:
            logger.warning(
                f"Rate limit remaining {rate_limit.remaining} below threshold {threshold}, "
                f"pausing until {rate_limit.reset_at.isoformat()}"
            )
            raise RateLimitPause(rate_limit.reset_at + RESUME_MARGIN, rate_limit.remaining)

    def after_call(
        self, rate_limit: RateLimit, total_repos: int, processed_repos: int
    ) -> None:
        self.record(rate_limit)
        self.check(rate_limit, total_repos, processed_repos)

    def finish(self, repos_processed: int) -> RateLimitMetrics:
        """Fold this run's cost into the stored average and save it."""
        requests = self.spent()
        metrics = RateLimitMetrics(
            avg_requests_per_repo=smooth_average(
                self.metrics.avg_requests_per_repo, requests, repos_processed
            ),
            last_run_repo_count=repos_processed,
            last_run_request_count=requests,
        )
        self.cache.put_json(RATE_LIMIT_METRICS_KEY, metrics.to_payload())
        self.cache.delete(self._cost_key)
        logger.info(
            f"Run used {requests} API points over {repos_processed} repos, "
            f"average now {metrics.avg_requests_per_repo:.1f}/repo"
        )
        self.metrics = metrics
        return metrics
