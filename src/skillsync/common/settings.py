import os
import pathlib
from dotenv import load_dotenv

load_dotenv()


def boolean_env(key: str, default: bool = False) -> bool:
    return os.getenv(key, "1" if default else "0").lower() in ("1", "true", "yes")


def list_env(key: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(key, default).split(",") if item.strip()]


def secret_env(key: str, default: str = "") -> str:
    if secret_file := os.getenv(f"{key}_FILE"):
        return pathlib.Path(secret_file).read_text().strip()
    return os.getenv(key, default)


# Database settings
DB_USER = os.getenv("DB_USER", "skills")
DB_PASSWORD = secret_env("DB_PASSWORD", "skills")
DB_HOST = os.getenv("DB_HOST", "postgres")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "skills")


def make_db_url(
    user=DB_USER, password=DB_PASSWORD, host=DB_HOST, port=DB_PORT, db=DB_NAME
):
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


DB_URL = os.getenv("DATABASE_URL", make_db_url())


# Redis settings (key-value cache and, optionally, the broker)
REDIS_HOST = os.getenv("REDIS_HOST", "redis")
REDIS_PORT = os.getenv("REDIS_PORT", "6379")
REDIS_DB = os.getenv("REDIS_DB", "0")
REDIS_PASSWORD = secret_env("REDIS_PASSWORD", "")
REDIS_URL = os.getenv("REDIS_URL", f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
CACHE_KEY_PREFIX = os.getenv("CACHE_KEY_PREFIX", "skillsync")


# Broker settings
CELERY_QUEUE_PREFIX = os.getenv("CELERY_QUEUE_PREFIX", "skillsync")
CELERY_BROKER_TYPE = os.getenv("CELERY_BROKER_TYPE", "redis").lower()  # amqp or redis
CELERY_BROKER_USER = os.getenv("CELERY_BROKER_USER", "")
CELERY_BROKER_PASSWORD = secret_env("CELERY_BROKER_PASSWORD", "")

CELERY_BROKER_HOST = os.getenv("CELERY_BROKER_HOST", "")
if not CELERY_BROKER_HOST:
    if CELERY_BROKER_TYPE == "amqp":
        RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "rabbitmq")
        RABBITMQ_PORT = os.getenv("RABBITMQ_PORT", "5672")
        CELERY_BROKER_HOST = f"{RABBITMQ_HOST}:{RABBITMQ_PORT}//"
    else:
        CELERY_BROKER_HOST = f"{REDIS_HOST}:{REDIS_PORT}"

CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", f"db+{DB_URL}")


# GitHub settings
GITHUB_TOKEN = secret_env("GITHUB_TOKEN", "")
GITHUB_USERNAME = os.getenv("GITHUB_USERNAME", "eve0415")
# Extra commit author addresses on top of the viewer's public email
GITHUB_EMAILS = list_env("GITHUB_EMAILS")
# Organizations whose repositories are only ever reported in aggregate
HIDDEN_ORGS = list_env("HIDDEN_ORGS", "DigitaltalPlayground,Wideplink")
GITHUB_REQUEST_TIMEOUT = int(os.getenv("GITHUB_REQUEST_TIMEOUT", 30))
GITHUB_HTTP_RETRIES = int(os.getenv("GITHUB_HTTP_RETRIES", 3))


# Rate limit scheduling
RATE_LIMIT_MIN_THRESHOLD = int(os.getenv("RATE_LIMIT_MIN_THRESHOLD", 50))
RATE_LIMIT_MAX_THRESHOLD = int(os.getenv("RATE_LIMIT_MAX_THRESHOLD", 500))
RATE_LIMIT_DEFAULT_REQUESTS_PER_REPO = float(
    os.getenv("RATE_LIMIT_DEFAULT_REQUESTS_PER_REPO", 12)
)
RATE_LIMIT_SMOOTHING = float(os.getenv("RATE_LIMIT_SMOOTHING", 0.3))


# Cache lifetimes (seconds)
LOCK_TTL = int(os.getenv("LOCK_TTL", 24 * 60 * 60))
# Step results must outlive the lock, or a resumed run replays finished steps
STEP_RESULT_TTL = max(int(os.getenv("STEP_RESULT_TTL", 7 * 24 * 60 * 60)), LOCK_TTL)
SKILLS_CONTENT_TTL = int(os.getenv("SKILLS_CONTENT_TTL", 30 * 24 * 60 * 60))
WORKFLOW_STATE_TTL = int(os.getenv("WORKFLOW_STATE_TTL", 24 * 60 * 60))


# Worker settings
# Intervals are in seconds
SKILLS_ANALYSIS_INTERVAL = int(os.getenv("SKILLS_ANALYSIS_INTERVAL", 24 * 60 * 60))
RECENT_ACTIVITY_MONTHS = int(os.getenv("RECENT_ACTIVITY_MONTHS", 6))
SUMMARY_MAX_TOKENS = int(os.getenv("SUMMARY_MAX_TOKENS", 6000))


# LLM settings
OPENAI_API_KEY = secret_env("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = secret_env("ANTHROPIC_API_KEY", "")
SKILLS_EXTRACTION_MODEL = os.getenv(
    "SKILLS_EXTRACTION_MODEL", "anthropic/claude-3-5-haiku-latest"
)
SKILLS_WRITER_MODEL = os.getenv("SKILLS_WRITER_MODEL", SKILLS_EXTRACTION_MODEL)
