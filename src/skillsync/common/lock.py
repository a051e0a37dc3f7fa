"""Advisory single-flight lock for the skills workflow.

The lock record lives in the key-value cache as
``{"instance_id": ..., "started_at": ...}``. A stale record (its holder
finished, crashed or cannot be found) is taken over instead of blocking
forever. Read and write are not atomic, so two instances racing on an
expired record can both win; that is accepted.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from skillsync.common import settings
from skillsync.common.cache import LOCK_KEY, KeyValueCache

logger = logging.getLogger(__name__)


class InstanceStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETE = "complete"
    ERRORED = "errored"
    TERMINATED = "terminated"
    UNKNOWN = "unknown"


LIVE_STATUSES = {InstanceStatus.QUEUED, InstanceStatus.RUNNING, InstanceStatus.PAUSED}


class ExecutionPlatform(Protocol):
    def status(self, instance_id: str) -> InstanceStatus:  # pragma: no cover - Protocol definition
        ...


class WorkflowLock:
    def __init__(
        self,
        cache: KeyValueCache,
        platform: ExecutionPlatform,
        ttl: int | None = None,
    ):
        self.cache = cache
        self.platform = platform
        self.ttl = ttl or settings.LOCK_TTL

    def holder(self) -> dict | None:
        record = self.cache.get_json(LOCK_KEY)
        if not isinstance(record, dict) or not record.get("instance_id"):
            return None
        return record

    def _holder_is_live(self, instance_id: str) -> bool:
        try:
            status = self.platform.status(instance_id)
        except Exception as e:
            logger.warning(
                f"Could not check status of lock holder {instance_id}, taking over: {e}"
            )
            return False

        if status in LIVE_STATUSES:
            return True
        logger.info(f"Lock holder {instance_id} is {status.value}, taking over")
        return False

    def acquire(self, instance_id: str) -> bool:
        """Take the lock for `instance_id`.

        Re-entrant: an instance resuming after a pause still holds its lock.
        Returns False only when another live instance holds it.
        """
        record = self.holder()
        if record:
            if record["instance_id"] == instance_id:
                return True
            if self._holder_is_live(record["instance_id"]):
                logger.info(
                    f"Workflow {record['instance_id']} is still running, "
                    f"skipping {instance_id}"
                )
                return False

        self.cache.put_json(
            LOCK_KEY,
            {
                "instance_id": instance_id,
                "started_at": datetime.now(timezone.utc).isoformat(),
            },
            ttl=self.ttl,
        )
        return True

    def release(self, instance_id: str) -> bool:
        record = self.holder()
        if not record or record["instance_id"] != instance_id:
            return False
        self.cache.delete(LOCK_KEY)
        return True
