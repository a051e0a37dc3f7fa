"""Provider-neutral request types and the text-generation provider interface.

Every caller in this project sends single-turn text prompts, so a message is
just a role and a string. Providers translate that into their own wire format.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from skillsync.common import settings

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Message:
    role: MessageRole
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.text}

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=MessageRole.USER, text=text)


@dataclass
class LLMSettings:
    temperature: float = 0.7
    max_tokens: int = 2048
    # Left unset by default: some models reject temperature and top_p together
    top_p: float | None = None
    stop_sequences: list[str] | None = None


class BaseLLMProvider(ABC):
    """A text-generation backend addressed as ``<provider>/<model>``."""

    provider: str = ""

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self._client: Any = None

    @property
    def model_name(self) -> str:
        return f"{self.provider}/{self.model}"

    @abstractmethod
    def _initialize_client(self) -> Any:
        ...

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._initialize_client()
        return self._client

    def log_usage(self, usage: Usage):
        logger.debug(
            f"{self.model_name} token usage: {usage.input_tokens} input, "
            f"{usage.output_tokens} output, {usage.total_tokens} total"
        )

    def _should_include_message(self, message: Message) -> bool:
        return True

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        return [msg.to_dict() for msg in messages if self._should_include_message(msg)]

    @abstractmethod
    def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        settings: LLMSettings | None = None,
    ) -> str:
        """Return the model's text reply. Provider errors propagate."""

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        settings: LLMSettings | None = None,
    ) -> str:
        return self.generate([Message.user(prompt)], system_prompt, settings)


def _provider_class(provider: str) -> type[BaseLLMProvider] | None:
    if provider == "anthropic":
        from skillsync.common.llms.anthropic_provider import AnthropicProvider

        return AnthropicProvider
    if provider == "openai":
        from skillsync.common.llms.openai_provider import OpenAIProvider

        return OpenAIProvider
    return None


API_KEY_SETTINGS = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}


def create_provider(
    model: str | None = None,
    api_key: str | None = None,
) -> BaseLLMProvider:
    """Build the provider for a ``<provider>/<model>`` identifier.

    Defaults to SKILLS_EXTRACTION_MODEL, and to the provider's key from
    settings. Raises ValueError for an unknown provider or a missing key.
    """
    model = model or settings.SKILLS_EXTRACTION_MODEL
    provider, _, model_id = model.partition("/")
    provider_class = _provider_class(provider) if model_id else None
    if provider_class is None:
        raise ValueError(
            f"Unknown provider for model: {model}. "
            f"Supported providers: Anthropic (anthropic/*), OpenAI (openai/*)"
        )

    key_setting = API_KEY_SETTINGS[provider]
    if api_key is None:
        api_key = getattr(settings, key_setting)
    if not api_key:
        raise ValueError(f"{key_setting} not found in settings.")

    return provider_class(api_key=api_key, model=model_id)
