"""
Models for the developer activity mirrored from GitHub.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    false,
    func,
)
from sqlalchemy.orm import relationship

from skillsync.common.db.models.base import Base

PRIVACY_CLASSES = ("self", "member-org", "private", "external")
REVIEW_STATES = ("APPROVED", "CHANGES_REQUESTED", "COMMENTED")


class Repository(Base):
    """A repository the tracked user owns or belongs to through an organization."""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True)
    github_id = Column(BigInteger, nullable=False, unique=True)

    full_name = Column(Text, nullable=False)  # owner/name
    owner = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    is_private = Column(Boolean, nullable=False, server_default=false())
    is_fork = Column(Boolean, nullable=False, server_default=false())
    privacy_class = Column(Text, nullable=False)
    default_branch = Column(Text, nullable=True)
    language = Column(Text, nullable=True)

    github_created_at = Column(DateTime(timezone=True), nullable=True)
    github_updated_at = Column(DateTime(timezone=True), nullable=True)
    fetched_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Incremental sync state. NULL means never synced or the last pass finished.
    last_commit_at = Column(DateTime(timezone=True), nullable=True)
    last_pr_updated_at = Column(DateTime(timezone=True), nullable=True)
    commits_cursor = Column(Text, nullable=True)
    prs_cursor = Column(Text, nullable=True)

    commits = relationship(
        "Commit", back_populates="repo", cascade="all, delete-orphan", passive_deletes=True
    )
    pull_requests = relationship(
        "PullRequest",
        back_populates="repo",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    reviews = relationship(
        "Review", back_populates="repo", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "privacy_class IN ('self', 'member-org', 'private', 'external')",
            name="repositories_privacy_class_check",
        ),
        Index("repositories_privacy_idx", "privacy_class"),
        Index("repositories_language_idx", "language"),
    )

    def __repr__(self) -> str:
        return f"<Repository {self.github_id} {self.privacy_class}>"


class Commit(Base):
    """A commit authored by the tracked user. Commits are immutable history."""

    __tablename__ = "commits"

    id = Column(Integer, primary_key=True)
    sha = Column(Text, nullable=False, unique=True)
    repo_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    message = Column(Text, nullable=False)  # headline only
    author_date = Column(DateTime(timezone=True), nullable=False)
    additions = Column(Integer, nullable=False, server_default="0")
    deletions = Column(Integer, nullable=False, server_default="0")
    files_changed = Column(Integer, nullable=False, server_default="0")
    fetched_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    repo = relationship("Repository", back_populates="commits")

    __table_args__ = (
        Index("commits_repo_idx", "repo_id"),
        Index("commits_date_idx", "author_date"),
    )


class PullRequest(Base):
    """A pull request opened by the tracked user."""

    __tablename__ = "pull_requests"

    id = Column(Integer, primary_key=True)
    github_id = Column(BigInteger, nullable=False, unique=True)
    repo_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    number = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=True)
    state = Column(Text, nullable=False)
    merged = Column(Boolean, nullable=False, server_default=false())
    additions = Column(Integer, nullable=False, server_default="0")
    deletions = Column(Integer, nullable=False, server_default="0")
    changed_files = Column(Integer, nullable=False, server_default="0")
    commits_count = Column(Integer, nullable=False, server_default="0")

    github_created_at = Column(DateTime(timezone=True), nullable=False)
    merged_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    github_updated_at = Column(DateTime(timezone=True), nullable=True)
    fetched_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    repo = relationship("Repository", back_populates="pull_requests")

    __table_args__ = (
        Index("pull_requests_repo_idx", "repo_id"),
        Index("pull_requests_state_idx", "state"),
        Index("pull_requests_created_idx", "github_created_at"),
    )


class Review(Base):
    """A review given by the tracked user, on anyone's pull request."""

    __tablename__ = "pr_reviews"

    id = Column(Integer, primary_key=True)
    github_id = Column(BigInteger, nullable=False, unique=True)
    repo_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    pr_number = Column(Integer, nullable=False)
    pr_title = Column(Text, nullable=True)
    state = Column(Text, nullable=False)
    body = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    fetched_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    repo = relationship("Repository", back_populates="reviews")

    __table_args__ = (
        CheckConstraint(
            "state IN ('APPROVED', 'CHANGES_REQUESTED', 'COMMENTED')",
            name="pr_reviews_state_check",
        ),
        Index("pr_reviews_repo_idx", "repo_id"),
        Index("pr_reviews_submitted_idx", "submitted_at"),
    )
