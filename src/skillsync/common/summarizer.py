"""Bounded, privacy-filtered digest of the stored activity history.

The digest is the only input the skill extraction stage sees, so it is
redacted before it is returned or persisted.
"""

import calendar
import logging
from datetime import datetime, timezone

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from skillsync.common import settings, tokens
from skillsync.common.db.models import (
    Commit,
    HistorySummary,
    PullRequest,
    Repository,
    Review,
)
from skillsync.common.db.upserts import insert
from skillsync.common.privacy import HIDDEN_CLASSES, redact

logger = logging.getLogger(__name__)

OVERALL_SUMMARY = "overall"
ALL_TIME = "all"
TOP_LANGUAGES = 20


def months_ago(now: datetime, months: int) -> datetime:
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def activity_counts(session: Session) -> dict[str, int]:
    return {
        "total_commits": session.scalar(select(func.count(Commit.id))) or 0,
        "total_prs": session.scalar(select(func.count(PullRequest.id))) or 0,
        "total_reviews": session.scalar(select(func.count(Review.id))) or 0,
        "repos_with_commits": session.scalar(
            select(func.count(distinct(Commit.repo_id)))
        )
        or 0,
    }


def language_distribution(session: Session) -> list[tuple[str, int, int]]:
    lines = func.sum(Commit.additions + Commit.deletions).label("lines_changed")
    rows = session.execute(
        select(Repository.language, func.count(Commit.id), lines)
        .select_from(Commit)
        .join(Repository, Commit.repo_id == Repository.id)
        .where(Repository.language.is_not(None))
        .group_by(Repository.language)
        .order_by(lines.desc())
        .limit(TOP_LANGUAGES)
    ).all()
    return [(language, commits, int(changed or 0)) for language, commits, changed in rows]


def recent_activity(session: Session, since: datetime) -> list[tuple[str | None, int, str]]:
    commit_count = func.count(Commit.id).label("commits")
    rows = session.execute(
        select(Repository.language, commit_count, Repository.privacy_class)
        .select_from(Commit)
        .join(Repository, Commit.repo_id == Repository.id)
        .where(Commit.author_date > since)
        .group_by(Repository.language, Repository.privacy_class)
        .order_by(commit_count.desc())
    ).all()
    return [tuple(row) for row in rows]  # type: ignore


def pr_patterns(session: Session) -> list[tuple[str, bool, int, float]]:
    rows = session.execute(
        select(
            PullRequest.state,
            PullRequest.merged,
            func.count(PullRequest.id),
            func.avg(PullRequest.additions + PullRequest.deletions),
        ).group_by(PullRequest.state, PullRequest.merged)
    ).all()
    return [
        (state, bool(merged), count, float(avg or 0))
        for state, merged, count, avg in rows
    ]


def review_patterns(session: Session) -> list[tuple[str, int]]:
    rows = session.execute(
        select(Review.state, func.count(Review.id)).group_by(Review.state)
    ).all()
    return [tuple(row) for row in rows]  # type: ignore


def hidden_repo_names(session: Session) -> list[str]:
    return list(
        session.scalars(
            select(Repository.full_name).where(
                Repository.privacy_class.in_(HIDDEN_CLASSES)
            )
        )
    )


def render_summary(
    username: str,
    counts: dict[str, int],
    languages: list[tuple[str, int, int]],
    recent: list[tuple[str | None, int, str]],
    prs: list[tuple[str, bool, int, float]],
    reviews: list[tuple[str, int]],
    months: int,
) -> str:
    lines = [
        f"# GitHub Activity Summary for {username}",
        "",
        "## Overview",
        f"- Total commits analyzed: {counts['total_commits']}",
        f"- Total PRs authored: {counts['total_prs']}",
        f"- Total PR reviews given: {counts['total_reviews']}",
        f"- Repositories with commits: {counts['repos_with_commits']}",
        "",
        "## Language Distribution (by lines changed)",
        *[
            f"- {language}: {commits} commits, {changed} lines"
            for language, commits, changed in languages
        ],
        "",
        f"## Recent Activity (Last {months} Months)",
        *[
            f"- {language or 'Unknown'}: {commits} commits ({privacy_class})"
            for language, commits, privacy_class in recent
        ],
        "",
        "## PR Patterns",
        *[
            f"- {state}{' (merged)' if merged else ''}: {count} PRs, avg {round(avg)} lines"
            for state, merged, count, avg in prs
        ],
        "",
        "## Review Patterns",
        *[f"- {state}: {count} reviews" for state, count in reviews],
    ]
    return "\n".join(lines) + "\n"


def store_summary(
    session: Session,
    content: str,
    summary_type: str = OVERALL_SUMMARY,
    time_range: str = ALL_TIME,
) -> None:
    estimate = tokens.token_estimate(content)
    stmt = (
        insert(session, HistorySummary)
        .values(
            summary_type=summary_type,
            time_range=time_range,
            content=content,
            token_estimate=estimate,
        )
        .on_conflict_do_update(
            index_elements=["summary_type", "time_range"],
            set_={
                "content": content,
                "token_estimate": estimate,
                "created_at": func.now(),
            },
        )
    )
    session.execute(stmt)
    session.commit()


def squash_history(
    session: Session, username: str | None = None, now: datetime | None = None
) -> str:
    """Aggregate every stored entity into one redacted Markdown digest and persist it."""
    username = username or settings.GITHUB_USERNAME
    now = now or datetime.now(timezone.utc)
    months = settings.RECENT_ACTIVITY_MONTHS

    summary = render_summary(
        username,
        activity_counts(session),
        language_distribution(session),
        recent_activity(session, months_ago(now, months)),
        pr_patterns(session),
        review_patterns(session),
        months,
    )
    summary = redact(summary, hidden_repo_names(session))
    summary = tokens.truncate(summary, settings.SUMMARY_MAX_TOKENS)

    store_summary(session, summary)
    logger.info(f"Stored activity summary (~{tokens.token_estimate(summary)} tokens)")
    return summary
