from skillsync.common.db.models.base import Base
from skillsync.common.db.models.activity import (
    PRIVACY_CLASSES,
    REVIEW_STATES,
    Commit,
    PullRequest,
    Repository,
    Review,
)
from skillsync.common.db.models.workflow import (
    WORKFLOW_STATE_ID,
    HistorySummary,
    WorkflowState,
)

__all__ = [
    "Base",
    "PRIVACY_CLASSES",
    "REVIEW_STATES",
    "Repository",
    "Commit",
    "PullRequest",
    "Review",
    "WORKFLOW_STATE_ID",
    "WorkflowState",
    "HistorySummary",
]
