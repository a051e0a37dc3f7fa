"""Core GitHub client with authentication and GraphQL support."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from skillsync.common import settings
from skillsync.common.rate_limit import RateLimit, RateLimitPause

from .types import (
    GITHUB_GRAPHQL_URL,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    RATE_LIMITED_STATUSES,
    RETRY_STATUSES,
    GithubAPIError,
    GithubCredentials,
)

logger = logging.getLogger(__name__)


class GithubClientCore:
    """Base client with authentication and core API methods."""

    def __init__(
        self,
        credentials: GithubCredentials,
        session: requests.Session | None = None,
        timeout: int | None = None,
    ):
        self.credentials = credentials
        self.timeout = timeout or settings.GITHUB_REQUEST_TIMEOUT
        self.session = session or self._make_session()
        self._setup_auth()

    @staticmethod
    def _make_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=settings.GITHUB_HTTP_RETRIES,
            backoff_factor=1,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset({"POST"}),
            raise_on_status=False,
        )
        session.mount("https://", HTTPAdapter(max_retries=retry))
        return session

    @staticmethod
    def _extract_nested(
        data: dict[str, Any] | None, *keys: str, default: Any = None
    ) -> Any:
        """Safely extract a value from nested dicts.

        Example:
            _extract_nested(data, "repository", "pullRequests", "nodes")
            is equivalent to data.get("repository", {}).get("pullRequests", {}).get("nodes")
        """
        result = data
        for key in keys:
            if result is None or not isinstance(result, dict):
                return default
            result = result.get(key)
        return result if result is not None else default

    def _graphql(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        operation_name: str | None = None,
    ) -> tuple[dict[str, Any], RateLimit]:
        """Execute a GraphQL query and return (data, rate_limit).

        Raises:
            RateLimitPause: the primary quota is exhausted (403/429 with no remaining calls)
            GithubAPIError: transport failure, non-2xx status, or errors without data
        """
        op = operation_name or "GraphQL request"
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = self.session.post(
                GITHUB_GRAPHQL_URL, json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise GithubAPIError(f"{op} failed: {e}") from e

        if response.status_code in RATE_LIMITED_STATUSES:
            self._raise_if_rate_limited(response)

        if not 200 <= response.status_code < 300:
            raise GithubAPIError(
                f"{op} failed with HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise GithubAPIError(f"{op} returned invalid JSON") from e

        data = result.get("data")
        errors = result.get("errors")
        if errors and not data:
            raise GithubAPIError(f"{op} failed: {errors}")
        if errors:
            # Partial success - some data returned but with errors
            logger.warning(f"{op} partial success with errors: {errors}")

        return data or {}, RateLimit.from_graphql(data)

    def _raise_if_rate_limited(self, response: requests.Response) -> None:
        remaining = response.headers.get(RATE_LIMIT_REMAINING_HEADER)
        if remaining is None or int(remaining) != 0:
            return

        reset_raw = response.headers.get(RATE_LIMIT_RESET_HEADER)
        if reset_raw:
            reset_at = datetime.fromtimestamp(int(reset_raw), tz=timezone.utc)
        else:
            reset_at = datetime.now(timezone.utc) + timedelta(hours=1)
        logger.warning(f"GitHub rate limited, quota resets at {reset_at.isoformat()}")
        raise RateLimitPause(reset_at + timedelta(seconds=1), remaining=0)

    def _setup_auth(self) -> None:
        self.session.headers["Authorization"] = (
            f"Bearer {self.credentials.access_token}"
        )
        self.session.headers["Accept"] = "application/vnd.github+json"
        self.session.headers["X-GitHub-Api-Version"] = "2022-11-28"
        self.session.headers["User-Agent"] = "skillsync-activity-sync"
