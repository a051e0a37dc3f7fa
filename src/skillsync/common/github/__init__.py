"""GitHub GraphQL client for the developer activity sync.

Example:
    from skillsync.common.github import GithubClient, GithubCredentials

    client = GithubClient(GithubCredentials(access_token="..."))
    for page in client.iter_user_repos():
        print(page.rate_limit.remaining, [r["full_name"] for r in page.nodes])
"""

from .activity import ActivityMixin
from .core import GithubClientCore
from .types import (
    GITHUB_GRAPHQL_URL,
    CommitData,
    GithubAPIError,
    GithubCredentials,
    Page,
    PullRequestData,
    RepoData,
    ReviewData,
    ViewerData,
    is_authored_by_login,
    is_authored_by_user,
    parse_github_date,
)


class GithubClient(ActivityMixin, GithubClientCore):
    """Complete GitHub API client.

    Inherits from:
    - GithubClientCore: Authentication, GraphQL, rate limit detection
    - ActivityMixin: Repository, commit and pull request paging
    """

    pass


__all__ = [
    # Main client
    "GithubClient",
    "GithubAPIError",
    # Types
    "GithubCredentials",
    "Page",
    "ViewerData",
    "RepoData",
    "CommitData",
    "PullRequestData",
    "ReviewData",
    # Utilities
    "parse_github_date",
    "is_authored_by_user",
    "is_authored_by_login",
    # Constants
    "GITHUB_GRAPHQL_URL",
]
