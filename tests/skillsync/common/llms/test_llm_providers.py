from unittest.mock import Mock, patch

import pytest

from skillsync.common import settings
from skillsync.common.llms import (
    AnthropicProvider,
    LLMSettings,
    Message,
    MessageRole,
    OpenAIProvider,
    create_provider,
)
from skillsync.common.llms import base


# =============================================================================
# Messages
# =============================================================================


def test_message_to_dict():
    message = Message(role=MessageRole.SYSTEM, text="be brief")
    assert message.to_dict() == {"role": "system", "content": "be brief"}


def test_message_user_helper():
    assert Message.user("hi there") == Message(role=MessageRole.USER, text="hi there")


# =============================================================================
# Provider factory
# =============================================================================


def test_create_provider_anthropic():
    provider = create_provider("anthropic/claude-3-5-haiku-latest", api_key="key")
    assert isinstance(provider, AnthropicProvider)
    assert provider.model == "claude-3-5-haiku-latest"
    assert provider.model_name == "anthropic/claude-3-5-haiku-latest"


def test_create_provider_openai():
    provider = create_provider("openai/gpt-4o", api_key="key")
    assert isinstance(provider, OpenAIProvider)
    assert provider.model_name == "openai/gpt-4o"


def test_create_provider_uses_settings_key():
    with patch.object(settings, "OPENAI_API_KEY", "from-settings"):
        provider = create_provider("openai/gpt-4o")
    assert provider.api_key == "from-settings"


def test_create_provider_defaults_to_extraction_model():
    with patch.object(settings, "SKILLS_EXTRACTION_MODEL", "openai/gpt-4o-mini"):
        provider = create_provider(api_key="key")
    assert provider.model == "gpt-4o-mini"


@pytest.mark.parametrize("model", ["claude-3", "google/gemini", "mistral/large"])
def test_create_provider_unknown(model):
    with pytest.raises(ValueError, match="Unknown provider"):
        create_provider(model, api_key="key")


@pytest.mark.parametrize(
    "model, key_name",
    [
        ("anthropic/claude", "ANTHROPIC_API_KEY"),
        ("openai/gpt-4o", "OPENAI_API_KEY"),
    ],
)
def test_create_provider_missing_key(model, key_name):
    with patch.object(settings, key_name, ""):
        with pytest.raises(ValueError, match=key_name):
            create_provider(model)


# =============================================================================
# Anthropic
# =============================================================================


@pytest.fixture
def anthropic_provider():
    return AnthropicProvider(api_key="test-key", model="claude-3-5-haiku-latest")


def test_anthropic_client_lazy_loading(anthropic_provider):
    assert anthropic_provider._client is None
    client = anthropic_provider.client
    assert client is not None
    assert anthropic_provider.client is client


def test_anthropic_request_kwargs(anthropic_provider):
    messages = [
        Message(role=MessageRole.SYSTEM, text="ignored"),
        Message.user("hello"),
    ]
    kwargs = anthropic_provider._build_request_kwargs(
        messages, "be brief", LLMSettings(temperature=0.2, max_tokens=100, stop_sequences=["END"])
    )

    assert kwargs == {
        "model": "claude-3-5-haiku-latest",
        "messages": [{"role": "user", "content": "hello"}],
        "temperature": 0.2,
        "max_tokens": 100,
        "system": "be brief",
        "stop_sequences": ["END"],
    }


def test_anthropic_generate(anthropic_provider, mock_anthropic_client):
    mock_anthropic_client.messages.create.return_value = Mock(
        content=[Mock(type="text", text="Hello "), Mock(type="tool_use"), Mock(type="text", text="world")],
        usage=Mock(input_tokens=5, output_tokens=2),
    )

    assert anthropic_provider.complete("hi") == "Hello world"
    call = mock_anthropic_client.messages.create.call_args.kwargs
    assert call["messages"][0]["role"] == "user"


def test_anthropic_generate_propagates_errors(anthropic_provider, mock_anthropic_client):
    mock_anthropic_client.messages.create.side_effect = RuntimeError("overloaded")
    with pytest.raises(RuntimeError):
        anthropic_provider.complete("hi")


# =============================================================================
# OpenAI
# =============================================================================


@pytest.mark.parametrize(
    "model, expected",
    [
        ("gpt-4o", False),
        ("GPT-4o-mini", False),
        ("o3-mini", True),
        ("o1", True),
    ],
)
def test_openai_reasoning_detection(model, expected):
    assert OpenAIProvider(api_key="k", model=model)._is_reasoning_model() == expected


def test_openai_request_kwargs_chat_model():
    provider = OpenAIProvider(api_key="k", model="gpt-4o")
    kwargs = provider._build_request_kwargs(
        [Message.user("hello")], "be brief", LLMSettings(temperature=0.5, max_tokens=50, top_p=0.9)
    )

    assert kwargs == {
        "model": "gpt-4o",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hello"},
        ],
        "max_tokens": 50,
        "temperature": 0.5,
        "top_p": 0.9,
    }


def test_openai_request_kwargs_reasoning_model():
    provider = OpenAIProvider(api_key="k", model="o3-mini")
    kwargs = provider._build_request_kwargs(
        [Message.user("hello")], "be brief", LLMSettings(max_tokens=50, stop_sequences=["X"])
    )

    assert kwargs["messages"][0] == {"role": "developer", "content": "be brief"}
    assert kwargs["max_completion_tokens"] == 50
    assert kwargs["stop"] == ["X"]
    assert "temperature" not in kwargs
    assert "max_tokens" not in kwargs


def test_openai_generate(mock_openai_client):
    provider = OpenAIProvider(api_key="k", model="gpt-4o")
    mock_openai_client.chat.completions.create.return_value = Mock(
        choices=[Mock(message=Mock(content="result"))],
        usage=Mock(prompt_tokens=3, completion_tokens=1, total_tokens=4),
    )

    assert provider.generate([Message.user("hi")]) == "result"


def test_openai_generate_empty_content(mock_openai_client):
    provider = OpenAIProvider(api_key="k", model="gpt-4o")
    mock_openai_client.chat.completions.create.return_value = Mock(
        choices=[Mock(message=Mock(content=None))], usage=None
    )

    assert provider.generate([Message.user("hi")]) == ""


def test_log_usage_is_debug_only(caplog):
    provider = OpenAIProvider(api_key="k", model="gpt-4o")
    with caplog.at_level("DEBUG", logger=base.__name__):
        provider.log_usage(base.Usage(input_tokens=1, output_tokens=2, total_tokens=3))
    assert "openai/gpt-4o token usage" in caplog.text
