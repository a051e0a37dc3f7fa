"""Liveness lookups for workflow instances running as Celery tasks."""

import logging

from celery import Celery
from celery import states
from celery.result import AsyncResult

from skillsync.common.lock import InstanceStatus

logger = logging.getLogger(__name__)

# Celery reports ids it has never seen as PENDING. The lock is only written by
# a task that has already started, so PENDING means the holder is gone.
CELERY_STATUS_MAP: dict[str, InstanceStatus] = {
    states.RECEIVED: InstanceStatus.QUEUED,
    states.STARTED: InstanceStatus.RUNNING,
    states.RETRY: InstanceStatus.PAUSED,
    states.SUCCESS: InstanceStatus.COMPLETE,
    states.FAILURE: InstanceStatus.ERRORED,
    states.REVOKED: InstanceStatus.TERMINATED,
    states.PENDING: InstanceStatus.UNKNOWN,
}


class CeleryExecutionPlatform:
    def __init__(self, app: Celery):
        self.app = app

    def status(self, instance_id: str) -> InstanceStatus:
        state = AsyncResult(instance_id, app=self.app).state
        return CELERY_STATUS_MAP.get(state, InstanceStatus.UNKNOWN)
