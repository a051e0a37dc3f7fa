from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy import func, select

from skillsync.common.db.models import Commit, PullRequest, Repository, Review
from skillsync.common.db.upserts import (
    as_utc,
    complete_commit_sync,
    complete_pr_sync,
    insert,
    insert_commit,
    insert_review,
    latest,
    save_commit_cursor,
    save_pr_cursor,
    upsert_pull_request,
    upsert_repo,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def repo_data(**overrides):
    data = {
        "github_id": 101,
        "full_name": "eve0415/site",
        "owner": "eve0415",
        "name": "site",
        "is_private": False,
        "is_fork": False,
        "default_branch": "main",
        "language": "TypeScript",
        "github_created_at": utc(2023, 1, 1),
        "github_updated_at": utc(2025, 10, 1),
    }
    return {**data, **overrides}


def commit_data(sha="abc", when=None, **overrides):
    data = {
        "sha": sha,
        "message": "Add feature",
        "author_email": "me@example.com",
        "author_date": when or utc(2025, 10, 1, 12),
        "additions": 10,
        "deletions": 3,
        "files_changed": 2,
    }
    return {**data, **overrides}


def pr_data(github_id=500, updated=None, **overrides):
    data = {
        "github_id": github_id,
        "number": 12,
        "title": "Add login",
        "body": None,
        "state": "OPEN",
        "merged": False,
        "author": "eve0415",
        "additions": 40,
        "deletions": 4,
        "changed_files": 3,
        "commits_count": 2,
        "github_created_at": utc(2025, 9, 1),
        "merged_at": None,
        "closed_at": None,
        "github_updated_at": updated or utc(2025, 9, 2),
        "reviews": [],
    }
    return {**data, **overrides}


def review_data(github_id=900, state="APPROVED", submitted=None, **overrides):
    data = {
        "github_id": github_id,
        "author": "eve0415",
        "state": state,
        "body": "Looks good",
        "submitted_at": submitted if submitted is not None else utc(2025, 9, 3),
    }
    return {**data, **overrides}


# =============================================================================
# Helpers
# =============================================================================


def test_as_utc():
    assert as_utc(None) is None
    assert as_utc(datetime(2025, 1, 1)) == utc(2025, 1, 1)
    assert as_utc(utc(2025, 1, 1)).tzinfo == timezone.utc


def test_latest_mixes_naive_and_aware():
    assert latest(None, None) is None
    assert latest(datetime(2025, 1, 2), utc(2025, 1, 1), None) == utc(2025, 1, 2)


def test_insert_rejects_unsupported_dialect():
    session = Mock()
    session.get_bind.return_value.dialect.name = "mysql"
    with pytest.raises(NotImplementedError):
        insert(session, Repository)


# =============================================================================
# Repositories
# =============================================================================


def test_upsert_repo_inserts_with_privacy_class(db_session):
    repo = upsert_repo(
        db_session, repo_data(), username="eve0415", hidden_orgs=["Wideplink"]
    )
    db_session.commit()

    assert repo.id is not None
    assert repo.privacy_class == "self"
    assert repo.language == "TypeScript"
    assert repo.last_commit_at is None


@pytest.mark.parametrize(
    "owner, is_private, expected",
    [
        ("Wideplink", False, "member-org"),
        ("someone", False, "external"),
        ("eve0415", True, "private"),
    ],
)
def test_upsert_repo_classifies(db_session, owner, is_private, expected):
    repo = upsert_repo(
        db_session,
        repo_data(owner=owner, full_name=f"{owner}/site", is_private=is_private),
        username="eve0415",
        hidden_orgs=["Wideplink"],
    )
    assert repo.privacy_class == expected


def test_upsert_repo_updates_and_keeps_sync_state(db_session):
    repo = upsert_repo(db_session, repo_data(), username="eve0415", hidden_orgs=[])
    repo_id = repo.id
    repo.last_commit_at = utc(2025, 9, 1)
    repo.commits_cursor = "cursor-1"
    db_session.commit()

    updated = upsert_repo(
        db_session,
        repo_data(is_private=True, language="Rust"),
        username="eve0415",
        hidden_orgs=[],
    )
    db_session.commit()

    assert updated.id == repo_id
    assert updated.privacy_class == "private"
    assert updated.language == "Rust"
    assert as_utc(updated.last_commit_at) == utc(2025, 9, 1)
    assert updated.commits_cursor == "cursor-1"
    assert db_session.scalar(select(func.count(Repository.id))) == 1


# =============================================================================
# Commits
# =============================================================================


def test_insert_commit_is_idempotent(db_session, make_repo):
    repo = make_repo()

    assert insert_commit(db_session, repo.id, commit_data()) is True
    assert insert_commit(db_session, repo.id, commit_data(message="changed")) is False
    db_session.commit()

    commits = db_session.scalars(select(Commit)).all()
    assert len(commits) == 1
    assert commits[0].message == "Add feature"


def test_commits_cascade_with_repository(db_session, make_repo):
    repo = make_repo()
    insert_commit(db_session, repo.id, commit_data())
    db_session.commit()

    db_session.delete(repo)
    db_session.commit()

    assert db_session.scalar(select(func.count(Commit.id))) == 0


def test_commit_cursor_and_completion(db_session, make_repo):
    repo = make_repo()
    insert_commit(db_session, repo.id, commit_data("a", utc(2025, 10, 1)))
    save_commit_cursor(db_session, repo.id, "page-2")
    db_session.commit()
    db_session.refresh(repo)
    assert repo.commits_cursor == "page-2"

    watermark = complete_commit_sync(db_session, repo.id, utc(2025, 10, 5))
    db_session.commit()
    db_session.refresh(repo)

    assert watermark == utc(2025, 10, 5)
    assert as_utc(repo.last_commit_at) == utc(2025, 10, 5)
    assert repo.commits_cursor is None


def test_commit_watermark_never_moves_back(db_session, make_repo):
    repo = make_repo(last_commit_at=utc(2025, 10, 10))

    watermark = complete_commit_sync(db_session, repo.id, utc(2025, 1, 1))
    db_session.commit()

    assert watermark == utc(2025, 10, 10)


def test_commit_watermark_falls_back_to_stored_commits(db_session, make_repo):
    repo = make_repo()
    insert_commit(db_session, repo.id, commit_data("a", utc(2025, 8, 1)))

    watermark = complete_commit_sync(db_session, repo.id, None)

    assert watermark == utc(2025, 8, 1)


# =============================================================================
# Pull requests and reviews
# =============================================================================


def test_upsert_pull_request_refreshes_state(db_session, make_repo):
    repo = make_repo()
    upsert_pull_request(db_session, repo.id, pr_data())
    upsert_pull_request(
        db_session,
        repo.id,
        pr_data(state="MERGED", merged=True, merged_at=utc(2025, 9, 5)),
    )
    db_session.commit()

    prs = db_session.scalars(select(PullRequest)).all()
    assert len(prs) == 1
    assert prs[0].state == "MERGED"
    assert prs[0].merged is True
    assert as_utc(prs[0].merged_at) == utc(2025, 9, 5)


def test_pr_cursor_and_completion(db_session, make_repo):
    repo = make_repo(last_pr_updated_at=utc(2025, 9, 1))
    upsert_pull_request(db_session, repo.id, pr_data(updated=utc(2025, 9, 20)))
    save_pr_cursor(db_session, repo.id, "prs-2")
    db_session.commit()
    db_session.refresh(repo)
    assert repo.prs_cursor == "prs-2"

    watermark = complete_pr_sync(db_session, repo.id, None)
    db_session.commit()
    db_session.refresh(repo)

    assert watermark == utc(2025, 9, 20)
    assert repo.prs_cursor is None


def test_insert_review_once(db_session, make_repo):
    repo = make_repo()

    assert insert_review(db_session, repo.id, 12, "Add login", review_data()) is True
    assert insert_review(db_session, repo.id, 12, "Add login", review_data()) is False
    db_session.commit()

    review = db_session.scalars(select(Review)).one()
    assert review.pr_number == 12
    assert review.pr_title == "Add login"
    assert review.state == "APPROVED"


@pytest.mark.parametrize("state", ["PENDING", "DISMISSED", ""])
def test_insert_review_drops_other_states(db_session, make_repo, state):
    repo = make_repo()
    assert insert_review(db_session, repo.id, 1, None, review_data(state=state)) is False
    assert db_session.scalar(select(func.count(Review.id))) == 0


def test_insert_review_requires_submission_time(db_session, make_repo):
    repo = make_repo()
    data = review_data()
    data["submitted_at"] = None
    assert insert_review(db_session, repo.id, 1, None, data) is False
