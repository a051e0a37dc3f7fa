import logging
import math

logger = logging.getLogger(__name__)


CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n\n[... truncated]"


def approx_token_count(s: str) -> int:
    return len(s) // CHARS_PER_TOKEN


def token_estimate(s: str) -> int:
    """Rounded-up estimate stored alongside persisted summaries."""
    return math.ceil(len(s) / CHARS_PER_TOKEN)


def truncate(content: str, max_tokens: int) -> str:
    """Cut `content` down to roughly `max_tokens`, at a line break where possible."""
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(content) <= max_chars:
        return content

    budget = max(max_chars - len(TRUNCATION_MARKER), 0)
    cut = content[:budget]
    if "\n" in cut:
        cut = cut[: cut.rindex("\n")]
    logger.debug(f"Truncated content from {len(content)} to {len(cut)} chars")
    return cut + TRUNCATION_MARKER
