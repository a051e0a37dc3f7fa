"""Celery entry point for the scheduled skills analysis."""

import logging
import uuid

from skillsync.common.cache import KeyValueCache
from skillsync.common.celery_app import ANALYZE_SKILLS, app
from skillsync.common.lock import WorkflowLock
from skillsync.common.rate_limit import RateLimitPause
from skillsync.workers.platform import CeleryExecutionPlatform
from skillsync.workers.workflow import SkillsWorkflow, WorkflowContext

logger = logging.getLogger(__name__)


@app.task(
    bind=True,
    name=ANALYZE_SKILLS,
    track_started=True,
    max_retries=None,
    autoretry_for=(),
)
def analyze_skills(self):
    """Run one skills workflow instance, unless another live one holds the lock.

    A rate-limit pause is turned into a retry scheduled for the quota reset.
    The retry keeps the task id, so the lock and the cached step results
    carry over to the resumed run.
    """
    instance_id = self.request.id or str(uuid.uuid4())
    cache = KeyValueCache()
    lock = WorkflowLock(cache, CeleryExecutionPlatform(app))

    if not lock.acquire(instance_id):
        return {"status": "skipped", "reason": "locked", "instance_id": instance_id}

    paused = False
    try:
        result = SkillsWorkflow(WorkflowContext(cache=cache), instance_id).run()
        logger.info(f"Skills analysis {instance_id} finished: {result}")
        return {**result, "instance_id": instance_id}
    except RateLimitPause as pause:
        paused = True
        logger.warning(
            f"Skills analysis {instance_id} paused until {pause.resume_at.isoformat()}"
        )
        raise self.retry(eta=pause.resume_at, exc=pause)
    finally:
        if not paused:
            lock.release(instance_id)
