from skillsync.common import settings
from skillsync.common.celery_app import app, ANALYZE_SKILLS


app.conf.beat_schedule = {
    "analyze-skills": {
        "task": ANALYZE_SKILLS,
        "schedule": settings.SKILLS_ANALYSIS_INTERVAL,
    },
}
