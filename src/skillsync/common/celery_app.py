from celery import Celery
from kombu.utils.url import safequote
from skillsync.common import settings

SKILLS_ROOT = "skillsync.workers.tasks.skills"

ANALYZE_SKILLS = f"{SKILLS_ROOT}.analyze_skills"


def get_broker_url() -> str:
    protocol = settings.CELERY_BROKER_TYPE
    user = safequote(settings.CELERY_BROKER_USER)
    password = safequote(settings.CELERY_BROKER_PASSWORD or "")
    host = settings.CELERY_BROKER_HOST

    if password:
        url = f"{protocol}://{user}:{password}@{host}"
    else:
        url = f"{protocol}://{host}"

    if protocol == "redis":
        url += f"/{settings.REDIS_DB}"
    return url


app = Celery(
    "skillsync",
    broker=get_broker_url(),
    backend=settings.CELERY_RESULT_BACKEND,
)

app.autodiscover_tasks(["skillsync.workers.tasks"])


app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # STARTED is what tells a second trigger that the lock holder is alive
    task_track_started=True,
    result_extended=True,
    task_time_limit=6 * 3600,
    task_soft_time_limit=6 * 3600 - 300,
    task_routes={
        f"{SKILLS_ROOT}.*": {"queue": f"{settings.CELERY_QUEUE_PREFIX}-skills"},
    },
)
