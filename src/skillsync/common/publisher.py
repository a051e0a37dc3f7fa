"""Writes the finished skill artifacts to the key-value cache for consumers."""

import logging
from typing import Any

from skillsync.common import settings
from skillsync.common.cache import (
    PROFILE_SUMMARY_KEY,
    SKILLS_CONTENT_KEY,
    WORKFLOW_STATE_KEY,
    KeyValueCache,
)
from skillsync.common.db.models import WorkflowState
from skillsync.common.skills import AISkillsContent, ProfileSummary

logger = logging.getLogger(__name__)


def publish_results(
    cache: KeyValueCache,
    content: AISkillsContent,
    profile: ProfileSummary,
) -> None:
    cache.put_json(SKILLS_CONTENT_KEY, content, ttl=settings.SKILLS_CONTENT_TTL)
    cache.put_json(PROFILE_SUMMARY_KEY, profile, ttl=settings.SKILLS_CONTENT_TTL)
    logger.info(f"Published {len(content['skills'])} skills")


def publish_state(cache: KeyValueCache, state: WorkflowState) -> dict[str, Any]:
    payload = state.as_payload()
    cache.put_json(WORKFLOW_STATE_KEY, payload, ttl=settings.WORKFLOW_STATE_TTL)
    return payload


def load_state(cache: KeyValueCache) -> dict[str, Any]:
    """Everything a progress display needs, read back from the cache."""
    return {
        "content": cache.get_json(SKILLS_CONTENT_KEY),
        "profile": cache.get_json(PROFILE_SUMMARY_KEY),
        "workflow": cache.get_json(WORKFLOW_STATE_KEY),
    }
