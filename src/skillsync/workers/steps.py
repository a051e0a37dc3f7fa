"""Cached workflow steps.

A Celery retry re-runs the whole task body under the same task id. Each step
stores its JSON result keyed by ``(instance_id, name)``, so a replay returns
the stored result instead of repeating the work.
"""

import logging
from typing import Callable, TypeVar

from skillsync.common import settings
from skillsync.common.cache import KeyValueCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepRunner:
    def __init__(self, cache: KeyValueCache, instance_id: str, ttl: int | None = None):
        self.cache = cache
        self.instance_id = instance_id
        self.ttl = ttl or settings.STEP_RESULT_TTL

    def key(self, name: str) -> str:
        return f"step:{self.instance_id}:{name}"

    def run(self, name: str, fn: Callable[[], T]) -> T:
        # Results are wrapped so a step that legitimately returns None is still cached
        stored = self.cache.get_json(self.key(name))
        if isinstance(stored, dict) and "result" in stored:
            logger.debug(f"Step {name} already done for {self.instance_id}, skipping")
            return stored["result"]

        result = fn()
        self.cache.put_json(self.key(name), {"result": result}, ttl=self.ttl)
        return result
