from datetime import datetime, timezone

import pytest

from skillsync.common.db.models import WorkflowState
from skillsync.common.db.upserts import as_utc
from skillsync.common.phases import (
    PHASE_ORDER,
    InvalidTransition,
    PhaseTracker,
    WorkflowPhase,
    phase_progress,
)


@pytest.fixture
def tracker(db_session):
    return PhaseTracker(db_session)


@pytest.mark.parametrize(
    "phase, done, total, expected",
    [
        (WorkflowPhase.FETCHING_COMMITS, 0, 10, 5),
        (WorkflowPhase.FETCHING_COMMITS, 5, 10, 17),
        (WorkflowPhase.FETCHING_COMMITS, 10, 10, 30),
        (WorkflowPhase.FETCHING_COMMITS, 20, 10, 30),
        (WorkflowPhase.FETCHING_PRS, 0, 0, 30),
        (WorkflowPhase.FETCHING_REVIEWS, 1, 1, 55),
        (WorkflowPhase.SQUASHING_HISTORY, 3, 4, 60),
        (WorkflowPhase.COMPLETED, 0, 0, 100),
    ],
)
def test_phase_progress(phase, done, total, expected):
    assert phase_progress(phase, done, total) == expected


def test_progress_starts_are_monotonic():
    starts = [phase_progress(phase) for phase in PHASE_ORDER]
    assert starts == sorted(starts)


def test_state_row_created_on_demand(tracker, db_session):
    state = tracker.state()
    assert state.phase == "idle"
    assert db_session.get(WorkflowState, 1) is state


def test_begin_resets_state(tracker):
    state = tracker.state()
    state.phase = "error"
    state.error_message = "old failure"
    state.progress_pct = 40

    started = datetime(2025, 10, 19, tzinfo=timezone.utc)
    state = tracker.begin(now=started)

    assert tracker.phase == WorkflowPhase.LISTING_REPOS
    assert state.progress_pct == 0
    assert state.error_message is None
    assert as_utc(state.last_run_at) == started


def test_advance_moves_forward(tracker):
    tracker.begin()
    state = tracker.advance(
        WorkflowPhase.FETCHING_COMMITS,
        12,
        current_repo="eve0415/site",
        total=4,
        processed=1,
    )

    assert state.phase == "fetching-commits"
    assert state.progress_pct == 12
    assert state.current_repo == "eve0415/site"
    assert state.repos_total == 4
    assert state.repos_processed == 1


def test_advance_defaults_to_phase_start(tracker):
    tracker.begin()
    state = tracker.advance(WorkflowPhase.SQUASHING_HISTORY)
    assert state.progress_pct == 60


def test_advance_within_phase_never_lowers_progress(tracker):
    tracker.begin()
    tracker.advance(WorkflowPhase.FETCHING_COMMITS, 20)
    state = tracker.advance(WorkflowPhase.FETCHING_COMMITS, 10)
    assert state.progress_pct == 20


def test_advance_backwards_rejected(tracker):
    tracker.begin()
    tracker.advance(WorkflowPhase.FETCHING_PRS)
    with pytest.raises(InvalidTransition):
        tracker.advance(WorkflowPhase.FETCHING_COMMITS)


def test_advance_to_error_rejected(tracker):
    tracker.begin()
    with pytest.raises(InvalidTransition):
        tracker.advance(WorkflowPhase.ERROR)


def test_completed_forces_full_progress(tracker):
    tracker.begin()
    finished = datetime(2025, 10, 19, 1, tzinfo=timezone.utc)
    state = tracker.advance(
        WorkflowPhase.COMPLETED, 50, current_repo="x", now=finished
    )

    assert state.progress_pct == 100
    assert state.current_repo is None
    assert as_utc(state.last_completed_at) == finished


@pytest.mark.parametrize("terminal", ["completed", "error"])
def test_terminal_phases_only_left_by_begin(tracker, terminal):
    tracker.begin()
    if terminal == "completed":
        tracker.advance(WorkflowPhase.COMPLETED)
    else:
        tracker.fail("boom")

    with pytest.raises(InvalidTransition):
        tracker.advance(WorkflowPhase.STORING_RESULTS)

    assert tracker.begin().phase == "listing-repos"


def test_fail_records_message(tracker):
    tracker.begin()
    tracker.advance(WorkflowPhase.FETCHING_COMMITS, 10, current_repo="eve0415/site")

    state = tracker.fail("GitHub exploded")

    assert state.phase == "error"
    assert state.error_message == "GitHub exploded"
    assert state.current_repo is None
    assert state.progress_pct == 10


def test_fail_after_broken_transaction(tracker, db_session):
    tracker.begin()
    db_session.add(WorkflowState(id=1, phase="idle"))
    with pytest.raises(Exception):
        db_session.flush()

    assert tracker.fail("conflict").phase == "error"


def test_state_payload(tracker):
    started = datetime(2025, 10, 19, tzinfo=timezone.utc)
    tracker.begin(now=started)
    payload = tracker.state().as_payload()

    assert payload["phase"] == "listing-repos"
    assert payload["last_run_at"].startswith("2025-10-19T00:00:00")
    assert payload["last_completed_at"] is None
