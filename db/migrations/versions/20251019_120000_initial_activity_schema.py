"""Initial activity schema

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2025-10-19 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "repositories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "is_private", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column("is_fork", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("privacy_class", sa.Text(), nullable=False),
        sa.Column("default_branch", sa.Text(), nullable=True),
        sa.Column("language", sa.Text(), nullable=True),
        sa.Column("github_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("github_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("last_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_pr_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("commits_cursor", sa.Text(), nullable=True),
        sa.Column("prs_cursor", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "privacy_class IN ('self', 'member-org', 'private', 'external')",
            name="repositories_privacy_class_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("github_id"),
    )
    op.create_index(
        "repositories_privacy_idx", "repositories", ["privacy_class"], unique=False
    )
    op.create_index(
        "repositories_language_idx", "repositories", ["language"], unique=False
    )

    op.create_table(
        "commits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sha", sa.Text(), nullable=False),
        sa.Column("repo_id", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("author_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("additions", sa.Integer(), server_default="0", nullable=False),
        sa.Column("deletions", sa.Integer(), server_default="0", nullable=False),
        sa.Column("files_changed", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["repo_id"], ["repositories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sha"),
    )
    op.create_index("commits_repo_idx", "commits", ["repo_id"], unique=False)
    op.create_index("commits_date_idx", "commits", ["author_date"], unique=False)

    op.create_table(
        "pull_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("repo_id", sa.Integer(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("merged", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("additions", sa.Integer(), server_default="0", nullable=False),
        sa.Column("deletions", sa.Integer(), server_default="0", nullable=False),
        sa.Column("changed_files", sa.Integer(), server_default="0", nullable=False),
        sa.Column("commits_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("github_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("github_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["repo_id"], ["repositories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("github_id"),
    )
    op.create_index(
        "pull_requests_repo_idx", "pull_requests", ["repo_id"], unique=False
    )
    op.create_index(
        "pull_requests_state_idx", "pull_requests", ["state"], unique=False
    )
    op.create_index(
        "pull_requests_created_idx",
        "pull_requests",
        ["github_created_at"],
        unique=False,
    )

    op.create_table(
        "pr_reviews",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("repo_id", sa.Integer(), nullable=False),
        sa.Column("pr_number", sa.Integer(), nullable=False),
        sa.Column("pr_title", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "state IN ('APPROVED', 'CHANGES_REQUESTED', 'COMMENTED')",
            name="pr_reviews_state_check",
        ),
        sa.ForeignKeyConstraint(["repo_id"], ["repositories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("github_id"),
    )
    op.create_index("pr_reviews_repo_idx", "pr_reviews", ["repo_id"], unique=False)
    op.create_index(
        "pr_reviews_submitted_idx", "pr_reviews", ["submitted_at"], unique=False
    )

    op.create_table(
        "workflow_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phase", sa.Text(), server_default="idle", nullable=False),
        sa.Column("progress_pct", sa.Integer(), server_default="0", nullable=False),
        sa.Column("current_repo", sa.Text(), nullable=True),
        sa.Column("repos_total", sa.Integer(), server_default="0", nullable=False),
        sa.Column("repos_processed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "progress_pct BETWEEN 0 AND 100", name="workflow_progress_check"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.execute("INSERT INTO workflow_state (id, phase) VALUES (1, 'idle')")

    op.create_table(
        "history_summaries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("summary_type", sa.Text(), nullable=False),
        sa.Column("time_range", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("token_estimate", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "summary_type IN ('commits', 'prs', 'reviews', 'overall')",
            name="history_summaries_type_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "summary_type", "time_range", name="history_summaries_type_range_key"
        ),
    )


def downgrade() -> None:
    op.drop_table("history_summaries")
    op.drop_table("workflow_state")
    op.drop_index("pr_reviews_submitted_idx", table_name="pr_reviews")
    op.drop_index("pr_reviews_repo_idx", table_name="pr_reviews")
    op.drop_table("pr_reviews")
    op.drop_index("pull_requests_created_idx", table_name="pull_requests")
    op.drop_index("pull_requests_state_idx", table_name="pull_requests")
    op.drop_index("pull_requests_repo_idx", table_name="pull_requests")
    op.drop_table("pull_requests")
    op.drop_index("commits_date_idx", table_name="commits")
    op.drop_index("commits_repo_idx", table_name="commits")
    op.drop_table("commits")
    op.drop_index("repositories_language_idx", table_name="repositories")
    op.drop_index("repositories_privacy_idx", table_name="repositories")
    op.drop_table("repositories")
