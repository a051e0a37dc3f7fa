"""Privacy classification and redaction for repository-derived text.

Every string that may reach the text-generation service or a published
artifact goes through this module. Repositories are sorted into four classes:

- self: public repos owned by the tracked user, name may be shown
- member-org: repos of hidden organizations, aggregate only
- private: any private repo, aggregate only
- external: public repos owned by someone else, name may be shown
"""

import re
from typing import Iterable, Literal

from skillsync.common import settings

PrivacyClass = Literal["self", "member-org", "private", "external"]

SHOWABLE_CLASSES: frozenset[str] = frozenset({"self", "external"})
HIDDEN_CLASSES: tuple[str, ...] = ("private", "member-org")

PRIVATE_REPO_TOKEN = "[private-repo]"
PRIVATE_NAME_TOKEN = "[private]"

MENTION_RE = re.compile(r"@[\w-]+")
ISSUE_REF_RE = re.compile(r"#\d+")
URL_RE = re.compile(r"https?://\S+")
# Bare repo names may start or end with "." or "-", where \b would not anchor
WHOLE_WORD = r"(?<!\w){}(?!\w)"


def classify_repo(
    is_private: bool,
    owner: str,
    *,
    username: str | None = None,
    hidden_orgs: Iterable[str] | None = None,
) -> PrivacyClass:
    """Classify a repository from its raw visibility and owner.

    Private always wins, then the hidden organization list, then ownership.
    """
    if is_private:
        return "private"

    username = settings.GITHUB_USERNAME if username is None else username
    hidden = settings.HIDDEN_ORGS if hidden_orgs is None else hidden_orgs

    owner_lower = (owner or "").lower()
    if any(org.lower() == owner_lower for org in hidden):
        return "member-org"
    if owner_lower and owner_lower == username.lower():
        return "self"
    return "external"


def can_show_name(privacy_class: str | None) -> bool:
    return privacy_class in SHOWABLE_CLASSES


def display_name(
    full_name: str, privacy_class: str | None, language: str | None = None
) -> str:
    """Name to show for a repo in progress labels and summaries."""
    if can_show_name(privacy_class):
        return full_name
    hint = f"{language} project" if language else "project"
    return f"[private {hint}]"


def anonymize_commit_message(message: str, privacy_class: str | None) -> str:
    """Strip identifiers from a commit message of a hidden repo.

    Keeps the first line (max 80 chars) so the technical gist survives.
    """
    if can_show_name(privacy_class):
        return message

    first_line = (message or "").split("\n")[0][:80]
    first_line = URL_RE.sub("[url]", first_line)
    first_line = MENTION_RE.sub("@[user]", first_line)
    return ISSUE_REF_RE.sub("#[ref]", first_line)


def redact(text: str, private_full_names: Iterable[str]) -> str:
    """Replace every private repo identifier in `text` with a placeholder.

    The full ``owner/name`` form is replaced wherever it appears; the bare
    name only as a whole word, so a repo called "script" leaves "TypeScript"
    alone. Matching is case-insensitive and done in a single pass, so the
    placeholders (which may themselves spell a repo name) are never rescanned.
    """
    if not text:
        return text

    full_names = {n.lower() for n in private_full_names if n}
    bare_names = {n.split("/", 1)[-1] for n in full_names} - {""}
    if not full_names:
        return text

    # Longest first so "acme/api-v2" wins over "acme/api" and "api"
    alternatives = sorted(full_names | bare_names, key=len, reverse=True)
    pattern = re.compile(
        "|".join(
            re.escape(name) if name in full_names else WHOLE_WORD.format(re.escape(name))
            for name in alternatives
        ),
        flags=re.IGNORECASE,
    )

    def replace(match: re.Match) -> str:
        if match.group(0).lower() in full_names:
            return PRIVATE_REPO_TOKEN
        return PRIVATE_NAME_TOKEN

    return pattern.sub(replace, text)


def aggregate_message(
    phase: str,
    public_count: int,
    private_count: int,
    current_public_repo: str | None = None,
) -> str:
    """Progress label that never names a hidden repository."""
    if current_public_repo:
        return f"{phase}: {current_public_repo}"
    if private_count > 0 and public_count == 0:
        return f"{phase}: analyzing private repositories..."
    if private_count > 0:
        return f"{phase}: {public_count} public + {private_count} private repos"
    return f"{phase}: {public_count} repositories"
