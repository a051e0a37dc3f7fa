"""Ordered workflow phases persisted to the singleton ``workflow_state`` row."""

import logging
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.orm import Session

from skillsync.common.db.models import WORKFLOW_STATE_ID, WorkflowState

logger = logging.getLogger(__name__)


class WorkflowPhase(str, Enum):
    IDLE = "idle"
    LISTING_REPOS = "listing-repos"
    FETCHING_COMMITS = "fetching-commits"
    FETCHING_PRS = "fetching-prs"
    FETCHING_REVIEWS = "fetching-reviews"
    SQUASHING_HISTORY = "squashing-history"
    AI_EXTRACTING_SKILLS = "ai-extracting-skills"
    AI_GENERATING_JAPANESE = "ai-generating-japanese"
    STORING_RESULTS = "storing-results"
    COMPLETED = "completed"
    ERROR = "error"


PHASE_ORDER = [
    WorkflowPhase.IDLE,
    WorkflowPhase.LISTING_REPOS,
    WorkflowPhase.FETCHING_COMMITS,
    WorkflowPhase.FETCHING_PRS,
    WorkflowPhase.FETCHING_REVIEWS,
    WorkflowPhase.SQUASHING_HISTORY,
    WorkflowPhase.AI_EXTRACTING_SKILLS,
    WorkflowPhase.AI_GENERATING_JAPANESE,
    WorkflowPhase.STORING_RESULTS,
    WorkflowPhase.COMPLETED,
]
TERMINAL_PHASES = {WorkflowPhase.COMPLETED, WorkflowPhase.ERROR}

# (start, end) progress for each phase; per-repo phases interpolate between them
PHASE_PROGRESS: dict[WorkflowPhase, tuple[int, int]] = {
    WorkflowPhase.IDLE: (0, 0),
    WorkflowPhase.LISTING_REPOS: (0, 5),
    WorkflowPhase.FETCHING_COMMITS: (5, 30),
    WorkflowPhase.FETCHING_PRS: (30, 45),
    WorkflowPhase.FETCHING_REVIEWS: (45, 55),
    WorkflowPhase.SQUASHING_HISTORY: (60, 60),
    WorkflowPhase.AI_EXTRACTING_SKILLS: (70, 70),
    WorkflowPhase.AI_GENERATING_JAPANESE: (85, 85),
    WorkflowPhase.STORING_RESULTS: (95, 95),
    WorkflowPhase.COMPLETED: (100, 100),
}


class InvalidTransition(ValueError):
    pass


def phase_progress(phase: WorkflowPhase, done: int = 0, total: int = 0) -> int:
    """Progress for `done` of `total` units of work inside `phase`."""
    start, end = PHASE_PROGRESS[phase]
    if total <= 0 or end == start:
        return start
    fraction = min(max(done / total, 0.0), 1.0)
    return start + int(round((end - start) * fraction))


class PhaseTracker:
    """Forward-only view of the workflow state row.

    Only ``begin`` can restart a workflow that reached a terminal phase;
    ``fail`` may be called from anywhere.
    """

    def __init__(self, session: Session):
        self.session = session

    def state(self) -> WorkflowState:
        state = self.session.get(WorkflowState, WORKFLOW_STATE_ID)
        if state is None:
            state = WorkflowState(
                id=WORKFLOW_STATE_ID,
                phase=WorkflowPhase.IDLE.value,
                progress_pct=0,
                repos_total=0,
                repos_processed=0,
            )
            self.session.add(state)
            self.session.flush()
        return state

    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase(self.state().phase)

    def begin(self, now: datetime | None = None) -> WorkflowState:
        state = self.state()
        state.phase = WorkflowPhase.LISTING_REPOS.value
        state.progress_pct = 0
        state.current_repo = None
        state.repos_total = 0
        state.repos_processed = 0
        state.error_message = None
        state.last_run_at = now or datetime.now(timezone.utc)
        self.session.commit()
        logger.info("Workflow started")
        return state

    def advance(
        self,
        phase: WorkflowPhase,
        progress: int | None = None,
        *,
        current_repo: str | None = None,
        total: int | None = None,
        processed: int | None = None,
        now: datetime | None = None,
    ) -> WorkflowState:
        state = self.state()
        current = WorkflowPhase(state.phase)

        if current in TERMINAL_PHASES:
            raise InvalidTransition(f"Cannot leave terminal phase {current.value}")
        if phase == WorkflowPhase.ERROR:
            raise InvalidTransition("Use fail() to enter the error phase")
        if PHASE_ORDER.index(phase) < PHASE_ORDER.index(current):
            raise InvalidTransition(
                f"Cannot move back from {current.value} to {phase.value}"
            )

        if progress is None:
            progress = PHASE_PROGRESS[phase][0]
        if phase == WorkflowPhase.COMPLETED:
            progress = 100
            state.last_completed_at = now or datetime.now(timezone.utc)
            current_repo = None

        state.phase = phase.value
        state.progress_pct = min(max(progress, state.progress_pct or 0), 100)
        state.current_repo = current_repo
        if total is not None:
            state.repos_total = total
        if processed is not None:
            state.repos_processed = processed
        self.session.commit()
        return state

    def fail(self, message: str) -> WorkflowState:
        # A failed session can't flush until it is rolled back
        self.session.rollback()
        state = self.state()
        state.phase = WorkflowPhase.ERROR.value
        state.error_message = message
        state.current_repo = None
        self.session.commit()
        logger.error(f"Workflow failed: {message}")
        return state
