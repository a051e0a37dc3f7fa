"""GitHub API types and data structures."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypedDict, TypeVar

from skillsync.common.rate_limit import RateLimit

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"

# Rate limit handling
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"
RATE_LIMITED_STATUSES = (403, 429)

# Transport errors worth retrying at the HTTP adapter level
RETRY_STATUSES = (502, 503, 504)

class GithubAPIError(RuntimeError):
    """A GraphQL request failed at the transport, HTTP or query level."""


@dataclass
class GithubCredentials:
    """Credentials for GitHub API access."""

    access_token: str


class ViewerData(TypedDict):
    login: str
    email: str | None


class RepoData(TypedDict):
    """Parsed repository node ready for the upserter."""

    github_id: int
    full_name: str  # owner/name
    owner: str
    name: str
    is_private: bool
    is_fork: bool
    default_branch: str | None
    language: str | None
    github_created_at: datetime | None
    github_updated_at: datetime | None


class CommitData(TypedDict):
    sha: str
    message: str  # headline only
    author_email: str | None
    author_date: datetime
    additions: int
    deletions: int
    files_changed: int


class ReviewData(TypedDict):
    github_id: int
    author: str | None
    state: str  # APPROVED, CHANGES_REQUESTED, COMMENTED, DISMISSED, PENDING
    body: str | None
    submitted_at: datetime | None


class PullRequestData(TypedDict):
    """Parsed pull request node, reviews included."""

    github_id: int
    number: int
    title: str
    body: str | None
    state: str  # OPEN, CLOSED, MERGED
    merged: bool
    author: str | None
    additions: int
    deletions: int
    changed_files: int
    commits_count: int
    github_created_at: datetime
    merged_at: datetime | None
    closed_at: datetime | None
    github_updated_at: datetime | None
    reviews: list[ReviewData]


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated connection plus the query's rate limit."""

    nodes: list[T]
    end_cursor: str | None
    has_next_page: bool
    rate_limit: RateLimit
    viewer: ViewerData | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def parse_github_date(date_str: str | None) -> datetime | None:
    """Parse ISO date string from GitHub API to datetime."""
    if not date_str:
        return None
    # GitHub uses ISO format with Z suffix
    return datetime.fromisoformat(date_str.replace("Z", "+00:00"))


def format_github_date(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def is_authored_by_user(email: str | None, user_emails: list[str] | set[str]) -> bool:
    """Whether a commit author email belongs to the tracked user."""
    if not email:
        return False
    email = email.lower()
    return any(email == known.lower() for known in user_emails if known)


def is_authored_by_login(login: str | None, username: str | None) -> bool:
    if not login or not username:
        return False
    return login.lower() == username.lower()
