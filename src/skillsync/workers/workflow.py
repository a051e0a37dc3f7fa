"""The sync-and-summarize skills workflow.

One instance walks the tracked user's repositories, mirrors their commits,
pull requests and reviews, squashes the history into a redacted digest, asks
the text-generation providers for skills and a profile, and publishes the
results. Each stage runs as a named cached step, so a resumed instance
(after a rate-limit pause or a worker restart) picks up where it stopped.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import requests
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from skillsync.common import settings
from skillsync.common.cache import KeyValueCache
from skillsync.common.db.connection import get_session_factory
from skillsync.common.db.models import Repository, Review
from skillsync.common.db.upserts import (
    as_utc,
    complete_commit_sync,
    complete_pr_sync,
    insert_commit,
    insert_review,
    latest,
    save_commit_cursor,
    save_pr_cursor,
    upsert_pull_request,
    upsert_repo,
)
from skillsync.common.github import (
    GithubAPIError,
    GithubClient,
    GithubCredentials,
    is_authored_by_login,
    is_authored_by_user,
)
from skillsync.common.llms import BaseLLMProvider, create_provider
from skillsync.common.phases import PhaseTracker, WorkflowPhase, phase_progress
from skillsync.common.privacy import (
    aggregate_message,
    anonymize_commit_message,
    can_show_name,
    display_name,
)
from skillsync.common.publisher import publish_results, publish_state
from skillsync.common.rate_limit import RateLimitPause, RateLimitTracker
from skillsync.common.skills import (
    build_skills_content,
    extract_skills,
    fallback_description,
    fallback_profile,
    generate_profile,
    localize_skills,
)
from skillsync.common.summarizer import (
    activity_counts,
    hidden_repo_names,
    squash_history,
)
from skillsync.workers.steps import StepRunner

logger = logging.getLogger(__name__)


def default_github_client() -> GithubClient:
    return GithubClient(GithubCredentials(access_token=settings.GITHUB_TOKEN))


@dataclass
class WorkflowContext:
    """Everything the workflow talks to. Tests swap in fakes here."""

    cache: KeyValueCache
    session_factory: Callable[[], Session] = field(
        default_factory=get_session_factory
    )
    github_factory: Callable[[], GithubClient] = default_github_client
    extractor_factory: Callable[[], BaseLLMProvider] = lambda: create_provider(
        settings.SKILLS_EXTRACTION_MODEL
    )
    writer_factory: Callable[[], BaseLLMProvider] = lambda: create_provider(
        settings.SKILLS_WRITER_MODEL
    )
    username: str = field(default_factory=lambda: settings.GITHUB_USERNAME)
    emails: list[str] = field(default_factory=lambda: list(settings.GITHUB_EMAILS))
    hidden_orgs: list[str] = field(default_factory=lambda: list(settings.HIDDEN_ORGS))


class SkillsWorkflow:
    def __init__(self, context: WorkflowContext, instance_id: str):
        self.context = context
        self.instance_id = instance_id
        self._github: GithubClient | None = None

    @property
    def github(self) -> GithubClient:
        if self._github is None:
            self._github = self.context.github_factory()
        return self._github

    def run(self) -> dict[str, Any]:
        session = self.context.session_factory()
        try:
            self.session = session
            self.phases = PhaseTracker(session)
            self.steps = StepRunner(self.context.cache, self.instance_id)
            self.rate_limit = RateLimitTracker(self.context.cache, self.instance_id)
            return self._run()
        except RateLimitPause:
            session.rollback()
            raise
        except Exception as e:
            state = self.phases.fail(str(e) or e.__class__.__name__)
            publish_state(self.context.cache, state)
            raise
        finally:
            session.close()

    def _run(self) -> dict[str, Any]:
        listing = self.steps.run("list-repos", self.list_repos)
        repos = listing["repos"]
        user_emails = [*self.context.emails]
        if listing.get("viewer_email"):
            user_emails.append(listing["viewer_email"])
        total = len(repos)

        for index, repo in enumerate(repos):
            self.steps.run(
                f"commits-{repo['github_id']}",
                lambda: self.sync_commits(repo, index, repos, user_emails),
            )

        for index, repo in enumerate(repos):
            self.steps.run(
                f"prs-{repo['github_id']}",
                lambda: self.sync_pull_requests(repo, index, repos),
            )

        self.steps.run("reviews", lambda: self.tally_reviews(repos))
        summary = self.steps.run("squash-history", self.squash)
        skills = self.steps.run("ai-extract-skills", lambda: self.extract(summary))
        generated = self.steps.run(
            "ai-generate-japanese", lambda: self.localize(summary, skills)
        )
        return self.steps.run(
            "store-results",
            lambda: self.store(generated["content"], generated["profile"], total),
        )

    def _after_call(self, rate_limit, total: int, processed: int) -> None:
        self.rate_limit.after_call(rate_limit, total, processed)

    def list_repos(self) -> dict[str, Any]:
        self.phases.begin()
        repos: list[dict[str, Any]] = []
        viewer_email = None

        for page in self.github.iter_user_repos():
            if page.viewer:
                viewer_email = page.viewer["email"] or viewer_email
            for repo_data in page.nodes:
                repo = upsert_repo(
                    self.session,
                    repo_data,
                    username=self.context.username,
                    hidden_orgs=self.context.hidden_orgs,
                )
                repos.append(
                    {
                        "id": repo.id,
                        "github_id": repo.github_id,
                        "owner": repo.owner,
                        "name": repo.name,
                        "full_name": repo.full_name,
                        "privacy_class": repo.privacy_class,
                        "language": repo.language,
                    }
                )
            self.session.commit()
            self.phases.advance(WorkflowPhase.LISTING_REPOS, total=len(repos))
            self._after_call(page.rate_limit, 0, 0)

        logger.info(f"Found {len(repos)} repositories")
        return {"repos": repos, "viewer_email": viewer_email}

    def _label(self, repo: dict[str, Any]) -> str:
        return display_name(repo["full_name"], repo["privacy_class"], repo["language"])

    def _progress_label(
        self, activity: str, repo: dict[str, Any], repos: list[dict[str, Any]]
    ) -> str:
        public = sum(1 for r in repos if can_show_name(r["privacy_class"]))
        shown = repo["full_name"] if can_show_name(repo["privacy_class"]) else None
        return aggregate_message(activity, public, len(repos) - public, shown)

    def sync_commits(
        self,
        repo: dict[str, Any],
        index: int,
        repos: list[dict[str, Any]],
        user_emails: list[str],
    ) -> dict[str, Any]:
        total = len(repos)
        self.phases.advance(
            WorkflowPhase.FETCHING_COMMITS,
            phase_progress(WorkflowPhase.FETCHING_COMMITS, index, total),
            current_repo=self._progress_label("Fetching commits", repo, repos),
            total=total,
            processed=index,
        )
        row = self.session.get(Repository, repo["id"])
        since = as_utc(row.last_commit_at) if row else None
        cursor = row.commits_cursor if row else None

        inserted = 0
        newest: datetime | None = None
        try:
            for page in self.github.iter_repo_commits(
                repo["owner"], repo["name"], since=since, cursor=cursor
            ):
                for commit in page.nodes:
                    newest = latest(newest, commit["author_date"])
                    if not is_authored_by_user(commit["author_email"], user_emails):
                        continue
                    stored = {
                        **commit,
                        "message": anonymize_commit_message(
                            commit["message"], repo["privacy_class"]
                        ),
                    }
                    inserted += insert_commit(self.session, repo["id"], stored)
                if page.has_next_page:
                    save_commit_cursor(self.session, repo["id"], page.end_cursor)
                self.session.commit()
                self._after_call(page.rate_limit, total, index)
        except (GithubAPIError, requests.RequestException) as e:
            self.session.rollback()
            logger.error(f"Skipping commits for {self._label(repo)}: {e}")
            return {"status": "error", "inserted": inserted}

        complete_commit_sync(self.session, repo["id"], newest)
        self.session.commit()
        return {"status": "ok", "inserted": inserted}

    def sync_pull_requests(
        self, repo: dict[str, Any], index: int, repos: list[dict[str, Any]]
    ) -> dict[str, Any]:
        total = len(repos)
        self.phases.advance(
            WorkflowPhase.FETCHING_PRS,
            phase_progress(WorkflowPhase.FETCHING_PRS, index, total),
            current_repo=self._progress_label("Fetching pull requests", repo, repos),
            total=total,
            processed=index,
        )
        row = self.session.get(Repository, repo["id"])
        stop_before = as_utc(row.last_pr_updated_at) if row else None
        cursor = row.prs_cursor if row else None
        username = self.context.username

        stored_prs = stored_reviews = 0
        newest: datetime | None = None
        try:
            for page in self.github.iter_repo_pull_requests(
                repo["owner"], repo["name"], cursor=cursor, stop_before=stop_before
            ):
                for pr in page.nodes:
                    newest = latest(newest, pr["github_updated_at"])
                    if is_authored_by_login(pr["author"], username):
                        upsert_pull_request(self.session, repo["id"], pr)
                        stored_prs += 1
                    for review in pr["reviews"]:
                        if is_authored_by_login(review["author"], username):
                            stored_reviews += insert_review(
                                self.session, repo["id"], pr["number"], pr["title"], review
                            )
                if page.has_next_page:
                    save_pr_cursor(self.session, repo["id"], page.end_cursor)
                self.session.commit()
                self._after_call(page.rate_limit, total, index)
        except (GithubAPIError, requests.RequestException) as e:
            self.session.rollback()
            logger.error(f"Skipping pull requests for {self._label(repo)}: {e}")
            return {"status": "error", "prs": stored_prs, "reviews": stored_reviews}

        complete_pr_sync(self.session, repo["id"], newest)
        self.session.commit()
        return {"status": "ok", "prs": stored_prs, "reviews": stored_reviews}

    def tally_reviews(self, repos: list[dict[str, Any]]) -> dict[str, int]:
        """Reviews arrive with their pull request pages; this only counts them."""
        total = len(repos)
        self.phases.advance(
            WorkflowPhase.FETCHING_REVIEWS,
            current_repo=None,
            total=total,
            processed=total,
        )
        repo_ids = [repo["id"] for repo in repos]
        rows = self.session.execute(
            select(Review.state, func.count(Review.id))
            .where(Review.repo_id.in_(repo_ids))
            .group_by(Review.state)
        ).all()
        counts = {state: count for state, count in rows}
        self.phases.advance(
            WorkflowPhase.FETCHING_REVIEWS,
            phase_progress(WorkflowPhase.FETCHING_REVIEWS, 1, 1),
        )
        logger.info(f"Reviews on record: {counts}")
        return counts

    def squash(self) -> str:
        self.phases.advance(WorkflowPhase.SQUASHING_HISTORY)
        return squash_history(self.session, self.context.username)

    def extract(self, summary: str) -> list[dict[str, Any]]:
        self.phases.advance(WorkflowPhase.AI_EXTRACTING_SKILLS)
        try:
            extractor = self.context.extractor_factory()
        except Exception as e:
            logger.error(f"Skill extraction provider unavailable: {e}")
            return []
        return extract_skills(summary, extractor, hidden_repo_names(self.session))  # type: ignore

    def localize(self, summary: str, skills: list[dict[str, Any]]) -> dict[str, Any]:
        self.phases.advance(WorkflowPhase.AI_GENERATING_JAPANESE)
        private_names = hidden_repo_names(self.session)

        try:
            writer = self.context.writer_factory()
        except Exception as e:
            logger.error(f"Writer provider unavailable, using fallbacks: {e}")
            localized = [
                {**skill, "description_ja": fallback_description(skill)}  # type: ignore
                for skill in skills
            ]
            profile = fallback_profile()
        else:
            localized = localize_skills(skills, writer, private_names)  # type: ignore
            profile = generate_profile(summary, writer, private_names)

        content = build_skills_content(
            localized,  # type: ignore
            activity_counts(self.session),
            settings.SKILLS_EXTRACTION_MODEL,
        )
        return {"content": content, "profile": profile}

    def store(
        self, content: dict[str, Any], profile: dict[str, Any], total: int
    ) -> dict[str, Any]:
        self.phases.advance(WorkflowPhase.STORING_RESULTS)
        publish_results(self.context.cache, content, profile)  # type: ignore
        self.rate_limit.finish(total)
        state = self.phases.advance(WorkflowPhase.COMPLETED, processed=total)
        publish_state(self.context.cache, state)
        return {
            "status": "completed",
            "repos": total,
            "skills": len(content["skills"]),
        }
