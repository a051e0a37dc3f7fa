"""Idempotent writes for the mirrored GitHub activity.

Every writer here can be replayed against unchanged remote data without
changing any row except the ``fetched_at`` bookkeeping columns.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from skillsync.common.db.models import (
    REVIEW_STATES,
    Commit,
    PullRequest,
    Repository,
    Review,
)
from skillsync.common.github.types import (
    CommitData,
    PullRequestData,
    RepoData,
    ReviewData,
)
from skillsync.common.privacy import classify_repo

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def latest(*values: datetime | None) -> datetime | None:
    present = [as_utc(v) for v in values if v is not None]
    return max(present) if present else None  # type: ignore


def insert(session: Session, table: Any):
    """INSERT construct with ON CONFLICT support for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


def upsert_repo(
    session: Session,
    repo_data: RepoData,
    *,
    username: str | None = None,
    hidden_orgs: list[str] | None = None,
) -> Repository:
    """Insert or refresh a repository keyed on its GitHub id.

    The privacy class is recomputed from owner and visibility on every call.
    Sync watermarks are never touched here.
    """
    privacy_class = classify_repo(
        repo_data["is_private"],
        repo_data["owner"],
        username=username,
        hidden_orgs=hidden_orgs,
    )
    values = {
        "full_name": repo_data["full_name"],
        "owner": repo_data["owner"],
        "name": repo_data["name"],
        "is_private": repo_data["is_private"],
        "is_fork": repo_data["is_fork"],
        "privacy_class": privacy_class,
        "default_branch": repo_data["default_branch"],
        "language": repo_data["language"],
        "github_updated_at": repo_data["github_updated_at"],
    }
    stmt = (
        insert(session, Repository)
        .values(
            github_id=repo_data["github_id"],
            github_created_at=repo_data["github_created_at"],
            **values,
        )
        .on_conflict_do_update(
            index_elements=["github_id"],
            set_={**values, "fetched_at": func.now()},
        )
    )
    session.execute(stmt)

    return session.scalars(
        select(Repository)
        .where(Repository.github_id == repo_data["github_id"])
        .execution_options(populate_existing=True)
    ).one()


def insert_commit(session: Session, repo_id: int, commit_data: CommitData) -> bool:
    """Insert a commit unless its sha is already stored. Returns True if inserted."""
    stmt = (
        insert(session, Commit)
        .values(
            sha=commit_data["sha"],
            repo_id=repo_id,
            message=commit_data["message"],
            author_date=commit_data["author_date"],
            additions=commit_data["additions"],
            deletions=commit_data["deletions"],
            files_changed=commit_data["files_changed"],
        )
        .on_conflict_do_nothing(index_elements=["sha"])
    )
    return session.execute(stmt).rowcount > 0


def upsert_pull_request(
    session: Session, repo_id: int, pr_data: PullRequestData
) -> None:
    """Insert a pull request or refresh its state, timestamps and diff stats."""
    values = {
        "title": pr_data["title"],
        "body": pr_data["body"],
        "state": pr_data["state"],
        "merged": pr_data["merged"],
        "additions": pr_data["additions"],
        "deletions": pr_data["deletions"],
        "changed_files": pr_data["changed_files"],
        "commits_count": pr_data["commits_count"],
        "merged_at": pr_data["merged_at"],
        "closed_at": pr_data["closed_at"],
        "github_updated_at": pr_data["github_updated_at"],
    }
    stmt = (
        insert(session, PullRequest)
        .values(
            github_id=pr_data["github_id"],
            repo_id=repo_id,
            number=pr_data["number"],
            github_created_at=pr_data["github_created_at"],
            **values,
        )
        .on_conflict_do_update(
            index_elements=["github_id"],
            set_={**values, "fetched_at": func.now()},
        )
    )
    session.execute(stmt)


def insert_review(
    session: Session,
    repo_id: int,
    pr_number: int,
    pr_title: str | None,
    review_data: ReviewData,
) -> bool:
    """Insert a review once. Reviews outside the recorded states are dropped."""
    if review_data["state"] not in REVIEW_STATES:
        return False
    if not review_data["submitted_at"]:
        return False

    stmt = (
        insert(session, Review)
        .values(
            github_id=review_data["github_id"],
            repo_id=repo_id,
            pr_number=pr_number,
            pr_title=pr_title,
            state=review_data["state"],
            body=review_data["body"],
            submitted_at=review_data["submitted_at"],
        )
        .on_conflict_do_nothing(index_elements=["github_id"])
    )
    return session.execute(stmt).rowcount > 0


def save_commit_cursor(session: Session, repo_id: int, cursor: str | None) -> None:
    session.execute(
        update(Repository)
        .where(Repository.id == repo_id)
        .values(commits_cursor=cursor)
    )


def save_pr_cursor(session: Session, repo_id: int, cursor: str | None) -> None:
    session.execute(
        update(Repository).where(Repository.id == repo_id).values(prs_cursor=cursor)
    )


def complete_commit_sync(
    session: Session, repo_id: int, newest: datetime | None
) -> datetime | None:
    """Close a finished commit pass: advance the watermark and drop the cursor.

    The watermark only moves forward. It also considers commits already
    stored, so a pass that saw nothing new never rewinds it.
    """
    stored = session.scalar(
        select(func.max(Commit.author_date)).where(Commit.repo_id == repo_id)
    )
    current = session.scalar(
        select(Repository.last_commit_at).where(Repository.id == repo_id)
    )
    watermark = latest(current, newest, stored)
    session.execute(
        update(Repository)
        .where(Repository.id == repo_id)
        .values(last_commit_at=watermark, commits_cursor=None)
    )
    return watermark


def complete_pr_sync(
    session: Session, repo_id: int, newest: datetime | None
) -> datetime | None:
    """Close a finished pull request pass. Same monotonic rule as commits."""
    stored = session.scalar(
        select(func.max(PullRequest.github_updated_at)).where(
            PullRequest.repo_id == repo_id
        )
    )
    current = session.scalar(
        select(Repository.last_pr_updated_at).where(Repository.id == repo_id)
    )
    watermark = latest(current, newest, stored)
    session.execute(
        update(Repository)
        .where(Repository.id == repo_id)
        .values(last_pr_updated_at=watermark, prs_cursor=None)
    )
    return watermark
