"""Redis-backed key-value cache used for locks, metrics and published results."""

import json
import logging
from typing import Any, Protocol

import redis

from skillsync.common import settings

logger = logging.getLogger(__name__)

LOCK_KEY = "lock"
RATE_LIMIT_METRICS_KEY = "rate-limit-metrics"
SKILLS_CONTENT_KEY = "ai-skills-content"
PROFILE_SUMMARY_KEY = "ai-profile-summary"
WORKFLOW_STATE_KEY = "ai-skills-state"


class RedisClientProtocol(Protocol):
    def get(self, key: str) -> Any:  # pragma: no cover - Protocol definition
        ...

    def set(
        self, key: str, value: Any, ex: int | None = None
    ) -> Any:  # pragma: no cover - Protocol definition
        ...

    def delete(self, *keys: str) -> Any:  # pragma: no cover - Protocol definition
        ...

    def incrby(
        self, key: str, amount: int = 1
    ) -> Any:  # pragma: no cover - Protocol definition
        ...

    def expire(
        self, key: str, time: int
    ) -> Any:  # pragma: no cover - Protocol definition
        ...


class KeyValueCache:
    """JSON get/put-with-TTL store over Redis.

    Keys are namespaced with ``CACHE_KEY_PREFIX`` so several deployments can
    share one Redis database.
    """

    def __init__(
        self,
        redis_client: RedisClientProtocol | None = None,
        *,
        key_prefix: str | None = None,
    ) -> None:
        if redis_client is None:
            redis_client = redis.Redis.from_url(
                settings.REDIS_URL,
                password=settings.REDIS_PASSWORD or None,
                decode_responses=False,
            )
        self._redis = redis_client
        prefix = key_prefix if key_prefix is not None else settings.CACHE_KEY_PREFIX
        self._key_prefix = prefix.rstrip(":")

    def key(self, name: str) -> str:
        if not self._key_prefix:
            return name
        return f"{self._key_prefix}:{name}"

    def get_json(self, name: str) -> Any:
        payload = self._redis.get(self.key(name))
        if payload is None:
            return None
        if isinstance(payload, bytes):
            payload = payload.decode()
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {name!r}")
            return None

    def put_json(self, name: str, value: Any, ttl: int | None = None) -> None:
        self._redis.set(
            self.key(name),
            json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str),
            ex=ttl,
        )

    def delete(self, name: str) -> None:
        self._redis.delete(self.key(name))

    def incr(self, name: str, amount: int = 1, ttl: int | None = None) -> int:
        value = self._redis.incrby(self.key(name), amount)
        if ttl:
            self._redis.expire(self.key(name), ttl)
        return int(value)

    def get_int(self, name: str) -> int:
        payload = self._redis.get(self.key(name))
        if payload is None:
            return 0
        if isinstance(payload, bytes):
            payload = payload.decode()
        return int(payload)
