from unittest.mock import Mock, patch

import anthropic
import openai
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from skillsync.common.cache import KeyValueCache
from skillsync.common.db.connection import enable_sqlite_foreign_keys
from skillsync.common.db.models import Base, Repository


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the cache uses."""

    def __init__(self):
        self.store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        if isinstance(value, str):
            value = value.encode()
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        else:
            self.ttls.pop(key, None)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def incrby(self, key, amount=1):
        value = int(self.store.get(key, b"0")) + amount
        self.store[key] = str(value).encode()
        return value

    def expire(self, key, time):
        if key not in self.store:
            return False
        self.ttls[key] = time
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return KeyValueCache(fake_redis, key_prefix="test")


@pytest.fixture
def db_engine():
    """
    In-memory SQLite engine with the full schema.

    StaticPool keeps a single connection, so every session sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_repo(db_session):
    def _make(
        github_id: int = 1,
        full_name: str = "eve0415/website",
        privacy_class: str = "self",
        language: str | None = "TypeScript",
        is_private: bool = False,
        **kwargs,
    ) -> Repository:
        owner, name = full_name.split("/", 1)
        repo = Repository(
            github_id=github_id,
            full_name=full_name,
            owner=owner,
            name=name,
            is_private=is_private,
            is_fork=False,
            privacy_class=privacy_class,
            language=language,
            **kwargs,
        )
        db_session.add(repo)
        db_session.commit()
        return repo

    return _make


@pytest.fixture
def mock_llm():
    """A provider whose `complete` returns queued responses in order."""

    def _make(*responses, model_name="anthropic/test-model"):
        provider = Mock()
        provider.model_name = model_name
        provider.complete = Mock(side_effect=list(responses))
        return provider

    return _make


@pytest.fixture(autouse=True)
def mock_openai_client():
    with patch.object(openai, "OpenAI", autospec=True) as mock_client:
        client = mock_client()
        client.chat = Mock()
        client.chat.completions.create = Mock(
            return_value=Mock(
                choices=[Mock(message=Mock(content="[]"))],
                usage=Mock(prompt_tokens=10, completion_tokens=2, total_tokens=12),
            )
        )
        yield client


@pytest.fixture(autouse=True)
def mock_anthropic_client():
    with patch.object(anthropic, "Anthropic", autospec=True) as mock_client:
        client = mock_client()
        client.messages = Mock()
        client.messages.create = Mock(
            return_value=Mock(
                content=[Mock(type="text", text="[]")],
                usage=Mock(input_tokens=10, output_tokens=2),
            )
        )
        yield client
