"""
Import sub-modules so Celery can register their @app.task decorators.
"""

from skillsync.workers.tasks import skills  # noqa

__all__ = ["skills"]
