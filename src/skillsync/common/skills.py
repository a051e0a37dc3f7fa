"""Skill extraction and Japanese localization over the activity digest.

Nothing in this module may fail the workflow. Each call to a text-generation
provider is wrapped, and a failed or unparseable response degrades to an
empty or templated result.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, TypedDict

from skillsync.common.llms import BaseLLMProvider, LLMSettings
from skillsync.common.privacy import redact

logger = logging.getLogger(__name__)

CATEGORIES = ("language", "infrastructure", "domain")
LEVELS = ("expert", "proficient", "learning")
TRENDS = ("rising", "stable", "declining")

CATEGORY_JA = {"language": "言語", "infrastructure": "インフラ", "domain": "ドメイン"}
LEVEL_JA = {"expert": "エキスパート", "proficient": "実務レベル", "learning": "学習中"}
TREND_JA = {"rising": "活動が増えている", "stable": "安定している", "declining": "活動が減っている"}

PROFILE_ERROR_JA = "プロフィール生成中にエラーが発生しました。"
MAX_EVIDENCE = 3

EXTRACTION_SETTINGS = LLMSettings(temperature=0.2, max_tokens=4096)
DESCRIPTION_SETTINGS = LLMSettings(temperature=0.7, max_tokens=512)
PROFILE_SETTINGS = LLMSettings(temperature=0.7, max_tokens=1024)

EXTRACTION_PROMPT = """
You are assessing a developer's skills from a digest of their GitHub activity.
Be strict: do not inflate levels, and judge only from the evidence below.

{summary}

For every skill you can support with evidence, return an object with:
- name: the technology or skill
- category: "language", "infrastructure" or "domain"
- level: "expert" (years of production use, deep mastery), "proficient" (solid working knowledge) or "learning" (limited production use)
- confidence: number between 0 and 1
- evidence: 2-3 short evidence points, never naming private repositories
- trend: "rising", "stable" or "declining", from recent versus overall activity

Ten commits in a language means "learning", not "proficient". Thin evidence means low confidence.

Respond with a JSON array of these objects and nothing else.
"""

DESCRIPTION_PROMPT = """
あなたはプロのテクニカルライターです。次のスキル情報をもとに、日本語で短い説明文を書いてください。

スキル名: {name}
カテゴリ: {category}
レベル: {level}
根拠: {evidence}
傾向: {trend}

条件:
- 2〜3文で簡潔に
- 事実に基づき、誇張しない
- プロフェッショナルで、少しだけ遊び心を
- 日本語のみ（英語の文は書かない）

説明文だけを出力してください。
"""

PROFILE_PROMPT = """
あなたはプロのテクニカルライターです。次の開発者のGitHub活動サマリーをもとに、日本語でプロフィールを書いてください。

{summary}

次の3つのキーを持つJSONオブジェクトを出力してください:
1. summary_ja: 全体的なプロフィール（3〜4文）
2. activity_narrative_ja: 最近の活動（1〜2文、「最近は〜に注力している」のような形）
3. skill_comparison_ja: スキルの比較（1文、「〜が最も強く、〜が伸びている」のような形）

JSONのみを出力してください。
"""


class Skill(TypedDict):
    name: str
    category: str  # language, infrastructure, domain
    level: str  # expert, proficient, learning
    confidence: float  # 0-1
    evidence: list[str]
    trend: str  # rising, stable, declining
    description_ja: str
    last_active: str  # ISO timestamp
    is_ai_discovered: bool


class ProfileSummary(TypedDict):
    summary_ja: str
    activity_narrative_ja: str
    skill_comparison_ja: str
    generated_at: str
    model_used: str


class AISkillsContent(TypedDict):
    skills: list[Skill]
    generated_at: str
    model_used: str
    total_commits_analyzed: int
    total_prs_analyzed: int
    total_reviews_analyzed: int


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _scan_balanced(text: str, opener: str, closer: str) -> Any:
    """Parse the first balanced `opener`...`closer` block that is valid JSON.

    Brackets inside JSON strings are skipped. Returns None when there is none.
    """
    if not text:
        return None

    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == opener:
                depth += 1
            elif char == closer:
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(text[start : pos + 1])
                    except (ValueError, RecursionError):
                        break
        start = text.find(opener, start + 1)
    return None


def extract_json_array(text: str | None) -> list | None:
    value = _scan_balanced(text or "", "[", "]")
    return value if isinstance(value, list) else None


def extract_json_object(text: str | None) -> dict | None:
    value = _scan_balanced(text or "", "{", "}")
    return value if isinstance(value, dict) else None


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    value = str(value or "").strip().lower()
    return value if value in allowed else default


def _confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(max(confidence, 0.0), 1.0)


def normalize_skill(
    record: Any, private_names: Iterable[str] = (), now: str | None = None
) -> Skill | None:
    """Coerce one model-produced record into a valid Skill, or None if unusable."""
    if not isinstance(record, dict):
        return None
    name = str(record.get("name") or "").strip()
    if not name:
        return None

    private_names = list(private_names)
    evidence = record.get("evidence") or []
    if isinstance(evidence, str):
        evidence = [evidence]
    evidence = [
        redact(str(item).strip(), private_names)
        for item in evidence
        if str(item).strip()
    ][:MAX_EVIDENCE]

    return Skill(
        name=redact(name, private_names),
        category=_choice(record.get("category"), CATEGORIES, "domain"),
        level=_choice(record.get("level"), LEVELS, "learning"),
        confidence=_confidence(record.get("confidence")),
        evidence=evidence,
        trend=_choice(record.get("trend"), TRENDS, "stable"),
        description_ja="",
        last_active=now or _now_iso(),
        is_ai_discovered=True,
    )


def extract_skills(
    summary: str, provider: BaseLLMProvider, private_names: Iterable[str] = ()
) -> list[Skill]:
    """Ask the model for skill records. Any failure yields an empty list."""
    try:
        response = provider.complete(
            EXTRACTION_PROMPT.format(summary=summary), settings=EXTRACTION_SETTINGS
        )
        records = extract_json_array(response)
        if records is None:
            logger.warning("Skill extraction returned no JSON array")
            return []

        now = _now_iso()
        private_names = list(private_names)
        skills = [normalize_skill(record, private_names, now) for record in records]
        return [skill for skill in skills if skill]
    except Exception as e:
        logger.error(f"Skill extraction failed: {e}")
        return []


def fallback_description(skill: Skill) -> str:
    category = CATEGORY_JA.get(skill["category"], skill["category"])
    level = LEVEL_JA.get(skill["level"], skill["level"])
    trend = TREND_JA.get(skill["trend"], "")
    text = f"{skill['name']}は{category}分野のスキルで、レベルは{level}です。"
    if trend:
        text += f"最近の活動は{trend}。"
    return text


def describe_skill(
    skill: Skill, provider: BaseLLMProvider, private_names: Iterable[str] = ()
) -> str:
    try:
        response = provider.complete(
            DESCRIPTION_PROMPT.format(
                name=skill["name"],
                category=skill["category"],
                level=skill["level"],
                evidence=", ".join(skill["evidence"]),
                trend=skill["trend"],
            ),
            settings=DESCRIPTION_SETTINGS,
        )
    except Exception as e:
        logger.warning(f"Description for {skill['name']} failed, using fallback: {e}")
        return fallback_description(skill)

    description = redact((response or "").strip(), private_names)
    return description or fallback_description(skill)


def localize_skills(
    skills: list[Skill], provider: BaseLLMProvider, private_names: Iterable[str] = ()
) -> list[Skill]:
    """Fill in `description_ja` for every skill, one call per skill."""
    private_names = list(private_names)
    return [
        Skill(**{**skill, "description_ja": describe_skill(skill, provider, private_names)})  # type: ignore
        for skill in skills
    ]


def fallback_profile(model_used: str = "") -> ProfileSummary:
    return ProfileSummary(
        summary_ja=PROFILE_ERROR_JA,
        activity_narrative_ja="",
        skill_comparison_ja="",
        generated_at=_now_iso(),
        model_used=model_used,
    )


def generate_profile(
    summary: str, provider: BaseLLMProvider, private_names: Iterable[str] = ()
) -> ProfileSummary:
    """Three-part Japanese profile narrative, degraded to defaults on failure."""
    profile = fallback_profile(provider.model_name)
    try:
        response = provider.complete(
            PROFILE_PROMPT.format(summary=summary), settings=PROFILE_SETTINGS
        )
    except Exception as e:
        logger.error(f"Profile generation failed: {e}")
        return profile

    parsed = extract_json_object(response)
    if parsed is None:
        logger.warning("Profile generation returned no JSON object")
        return profile

    private_names = list(private_names)
    for field in ("summary_ja", "activity_narrative_ja", "skill_comparison_ja"):
        value = parsed.get(field)
        value = value.strip() if isinstance(value, str) else ""
        profile[field] = redact(value, private_names)  # type: ignore
    return profile


def build_skills_content(
    skills: list[Skill], counts: dict[str, int], model: str
) -> AISkillsContent:
    return AISkillsContent(
        skills=skills,
        generated_at=_now_iso(),
        model_used=model,
        total_commits_analyzed=counts.get("total_commits", 0),
        total_prs_analyzed=counts.get("total_prs", 0),
        total_reviews_analyzed=counts.get("total_reviews", 0),
    )
