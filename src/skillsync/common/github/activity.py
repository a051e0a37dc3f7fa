"""Repository, commit and pull request paging for the activity sync."""

import logging
from datetime import datetime
from typing import Any, Generator

from .queries import REPO_COMMITS_QUERY, REPO_PULL_REQUESTS_QUERY, USER_REPOS_QUERY
from .types import (
    CommitData,
    Page,
    PullRequestData,
    RepoData,
    ReviewData,
    ViewerData,
    format_github_date,
    parse_github_date,
)

logger = logging.getLogger(__name__)


class ActivityMixin:
    """Mixin providing cursor-paginated activity fetching.

    Each generator yields whole pages so the caller can persist the page's
    cursor and consult the rate limit before asking for the next one.
    """

    def iter_user_repos(
        self, cursor: str | None = None
    ) -> Generator[Page[RepoData], None, None]:
        """Repos the viewer owns or reaches through an organization membership."""
        while True:
            data, rate_limit = self._graphql(  # type: ignore
                USER_REPOS_QUERY,
                {"cursor": cursor} if cursor else None,
                operation_name="UserRepos",
            )
            viewer = data.get("viewer") or {}
            connection = viewer.get("repositories") or {}
            page_info = connection.get("pageInfo") or {}

            yield Page(
                nodes=[
                    self._parse_repo_graphql(node)
                    for node in connection.get("nodes") or []
                    if node
                ],
                end_cursor=page_info.get("endCursor"),
                has_next_page=bool(page_info.get("hasNextPage")),
                rate_limit=rate_limit,
                viewer=ViewerData(
                    login=viewer.get("login") or "", email=viewer.get("email") or None
                ),
            )

            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

    def iter_repo_commits(
        self,
        owner: str,
        name: str,
        since: datetime | None = None,
        cursor: str | None = None,
    ) -> Generator[Page[CommitData], None, None]:
        """Default-branch history, newest first, optionally only after `since`."""
        while True:
            variables: dict[str, Any] = {"owner": owner, "name": name}
            if since:
                variables["since"] = format_github_date(since)
            if cursor:
                variables["cursor"] = cursor

            data, rate_limit = self._graphql(  # type: ignore
                REPO_COMMITS_QUERY, variables, operation_name="RepoCommits"
            )
            history = self._extract_nested(  # type: ignore
                data, "repository", "defaultBranchRef", "target", "history", default={}
            )
            page_info = history.get("pageInfo") or {}

            yield Page(
                nodes=[
                    self._parse_commit_graphql(node)
                    for node in history.get("nodes") or []
                    if node
                ],
                end_cursor=page_info.get("endCursor"),
                has_next_page=bool(page_info.get("hasNextPage")),
                rate_limit=rate_limit,
            )

            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

    def iter_repo_pull_requests(
        self,
        owner: str,
        name: str,
        cursor: str | None = None,
        stop_before: datetime | None = None,
    ) -> Generator[Page[PullRequestData], None, None]:
        """Pull requests ordered by last update, newest first.

        With `stop_before` set, paging ends after the first page whose oldest
        pull request was last updated before that moment: everything further
        back was already seen by an earlier sync.
        """
        while True:
            variables: dict[str, Any] = {"owner": owner, "name": name}
            if cursor:
                variables["cursor"] = cursor

            data, rate_limit = self._graphql(  # type: ignore
                REPO_PULL_REQUESTS_QUERY, variables, operation_name="RepoPullRequests"
            )
            connection = self._extract_nested(  # type: ignore
                data, "repository", "pullRequests", default={}
            )
            page_info = connection.get("pageInfo") or {}
            nodes = [
                self._parse_pull_request_graphql(node)
                for node in connection.get("nodes") or []
                if node
            ]
            reached_watermark = self._is_older_than(nodes, stop_before)

            yield Page(
                nodes=nodes,
                end_cursor=page_info.get("endCursor"),
                has_next_page=bool(page_info.get("hasNextPage")) and not reached_watermark,
                rate_limit=rate_limit,
            )

            if reached_watermark:
                logger.debug(f"Reached PR watermark for {owner}/{name}")
                break
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

    @staticmethod
    def _is_older_than(
        nodes: list[PullRequestData], stop_before: datetime | None
    ) -> bool:
        if not stop_before or not nodes:
            return False
        updated = [n["github_updated_at"] for n in nodes if n["github_updated_at"]]
        return bool(updated) and min(updated) < stop_before

    def _parse_repo_graphql(self, node: dict[str, Any]) -> RepoData:
        full_name = node.get("nameWithOwner") or ""
        owner = self._extract_nested(node, "owner", "login")  # type: ignore
        if not owner:
            owner = full_name.split("/", 1)[0]
        return RepoData(
            github_id=int(node["databaseId"]),
            full_name=full_name,
            owner=owner,
            name=node.get("name") or full_name.split("/", 1)[-1],
            is_private=bool(node.get("isPrivate")),
            is_fork=bool(node.get("isFork")),
            default_branch=self._extract_nested(node, "defaultBranchRef", "name"),  # type: ignore
            language=self._extract_nested(node, "primaryLanguage", "name"),  # type: ignore
            github_created_at=parse_github_date(node.get("createdAt")),
            github_updated_at=parse_github_date(node.get("updatedAt")),
        )

    def _parse_commit_graphql(self, node: dict[str, Any]) -> CommitData:
        authored = parse_github_date(node.get("authoredDate"))
        committed = parse_github_date(node.get("committedDate"))
        return CommitData(
            sha=node["oid"],
            message=node.get("messageHeadline") or "",
            author_email=self._extract_nested(node, "author", "email"),  # type: ignore
            author_date=authored or committed,  # type: ignore
            additions=node.get("additions") or 0,
            deletions=node.get("deletions") or 0,
            files_changed=node.get("changedFilesIfAvailable") or 0,
        )

    def _parse_review_graphql(self, node: dict[str, Any]) -> ReviewData:
        return ReviewData(
            github_id=int(node["databaseId"]),
            author=self._extract_nested(node, "author", "login"),  # type: ignore
            state=node.get("state") or "",
            body=node.get("body") or None,
            submitted_at=parse_github_date(node.get("submittedAt")),
        )

    def _parse_pull_request_graphql(self, node: dict[str, Any]) -> PullRequestData:
        reviews = self._extract_nested(node, "reviews", "nodes", default=[])  # type: ignore
        return PullRequestData(
            github_id=int(node["databaseId"]),
            number=node["number"],
            title=node.get("title") or "",
            body=node.get("body") or None,
            state=node.get("state") or "OPEN",
            merged=bool(node.get("merged")),
            author=self._extract_nested(node, "author", "login"),  # type: ignore
            additions=node.get("additions") or 0,
            deletions=node.get("deletions") or 0,
            changed_files=node.get("changedFiles") or 0,
            commits_count=self._extract_nested(node, "commits", "totalCount", default=0),  # type: ignore
            github_created_at=parse_github_date(node.get("createdAt")),  # type: ignore
            merged_at=parse_github_date(node.get("mergedAt")),
            closed_at=parse_github_date(node.get("closedAt")),
            github_updated_at=parse_github_date(node.get("updatedAt")),
            reviews=[
                self._parse_review_graphql(review)
                for review in reviews
                if review and review.get("databaseId") is not None
            ],
        )
