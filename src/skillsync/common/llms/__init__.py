"""Text-generation providers behind one interface."""

from skillsync.common.llms.base import (
    BaseLLMProvider,
    LLMSettings,
    Message,
    MessageRole,
    Usage,
    create_provider,
)
from skillsync.common.llms.anthropic_provider import AnthropicProvider
from skillsync.common.llms.openai_provider import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "AnthropicProvider",
    "OpenAIProvider",
    "Message",
    "MessageRole",
    "Usage",
    "LLMSettings",
    "create_provider",
]
