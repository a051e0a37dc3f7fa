"""Anthropic LLM provider implementation."""

import logging
from typing import Any

import anthropic

from skillsync.common.llms.base import (
    BaseLLMProvider,
    LLMSettings,
    Message,
    MessageRole,
    Usage,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic LLM provider."""

    provider = "anthropic"

    def _initialize_client(self) -> anthropic.Anthropic:
        """Initialize the Anthropic client."""
        return anthropic.Anthropic(api_key=self.api_key)

    def _should_include_message(self, message: Message) -> bool:
        """Filter out system messages (handled separately in Anthropic)."""
        return message.role != MessageRole.SYSTEM

    def _build_request_kwargs(
        self,
        messages: list[Message],
        system_prompt: str | None,
        settings: LLMSettings,
    ) -> dict[str, Any]:
        """Build request kwargs for the Messages API."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }

        # Only include top_p if explicitly set
        if settings.top_p is not None:
            kwargs["top_p"] = settings.top_p

        if system_prompt:
            kwargs["system"] = system_prompt

        if settings.stop_sequences:
            kwargs["stop_sequences"] = settings.stop_sequences

        return kwargs

    def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        settings: LLMSettings | None = None,
    ) -> str:
        """Generate a non-streaming response."""
        settings = settings or LLMSettings()
        kwargs = self._build_request_kwargs(messages, system_prompt, settings)

        try:
            response = self.client.messages.create(**kwargs)
            if usage := getattr(response, "usage", None):
                self.log_usage(
                    Usage(
                        input_tokens=usage.input_tokens,
                        output_tokens=usage.output_tokens,
                        total_tokens=usage.input_tokens + usage.output_tokens,
                    )
                )
            return "".join(
                block.text for block in response.content if block.type == "text"
            )
        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            raise
