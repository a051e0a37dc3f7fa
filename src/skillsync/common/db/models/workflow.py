"""
Models for workflow bookkeeping and derived summaries.
"""

from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Text,
    UniqueConstraint,
    func,
)

from skillsync.common.db.models.base import Base

WORKFLOW_STATE_ID = 1


class WorkflowState(Base):
    """Singleton row read by progress displays."""

    __tablename__ = "workflow_state"

    id = Column(Integer, primary_key=True, default=WORKFLOW_STATE_ID)
    phase = Column(Text, nullable=False, server_default="idle")
    progress_pct = Column(Integer, nullable=False, server_default="0")
    current_repo = Column(Text, nullable=True)
    repos_total = Column(Integer, nullable=False, server_default="0")
    repos_processed = Column(Integer, nullable=False, server_default="0")
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    last_completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("progress_pct BETWEEN 0 AND 100", name="workflow_progress_check"),
    )

    def as_payload(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "progress_pct": self.progress_pct,
            "current_repo": self.current_repo,
            "repos_total": self.repos_total,
            "repos_processed": self.repos_processed,
            "last_run_at": self.last_run_at and self.last_run_at.isoformat(),
            "last_completed_at": self.last_completed_at
            and self.last_completed_at.isoformat(),
            "error_message": self.error_message,
        }


class HistorySummary(Base):
    """Privacy-filtered digest of the activity history, one row per type and range."""

    __tablename__ = "history_summaries"

    id = Column(Integer, primary_key=True)
    summary_type = Column(Text, nullable=False)
    time_range = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    token_estimate = Column(Integer, nullable=False, server_default="0")
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "summary_type IN ('commits', 'prs', 'reviews', 'overall')",
            name="history_summaries_type_check",
        ),
        UniqueConstraint(
            "summary_type", "time_range", name="history_summaries_type_range_key"
        ),
    )
