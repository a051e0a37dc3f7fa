"""OpenAI LLM provider implementation."""

import logging
from typing import Any

import openai

from skillsync.common.llms.base import (
    BaseLLMProvider,
    LLMSettings,
    Message,
    Usage,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider."""

    provider = "openai"

    # Models that accept max_tokens/temperature; everything else is treated
    # as a reasoning model
    NON_REASONING_MODELS = {"gpt-4o", "gpt-4o-mini", "gpt-4.1", "gpt-4.1-mini"}

    def _is_reasoning_model(self) -> bool:
        """
        Check if the current model is a reasoning model (o-series).

        Reasoning models have different parameter requirements:
        - Use max_completion_tokens instead of max_tokens
        - Don't support temperature or top_p
        - Take the system prompt as a developer message
        """
        return self.model.lower() not in self.NON_REASONING_MODELS

    def _initialize_client(self) -> openai.OpenAI:
        """Initialize the OpenAI client."""
        return openai.OpenAI(api_key=self.api_key)

    def _build_request_kwargs(
        self,
        messages: list[Message],
        system_prompt: str | None,
        settings: LLMSettings,
    ) -> dict[str, Any]:
        openai_messages = self._convert_messages(messages)
        is_reasoning = self._is_reasoning_model()

        if system_prompt:
            role = "developer" if is_reasoning else "system"
            openai_messages.insert(0, {"role": role, "content": system_prompt})

        max_tokens_key = "max_completion_tokens" if is_reasoning else "max_tokens"

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": openai_messages,
            max_tokens_key: settings.max_tokens,
        }

        if not is_reasoning:
            kwargs["temperature"] = settings.temperature
            if settings.top_p is not None:
                kwargs["top_p"] = settings.top_p

        if settings.stop_sequences:
            kwargs["stop"] = settings.stop_sequences

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
            response = self.client.chat.completions.create(**kwargs)
            if usage := response.usage:
                self.log_usage(
                    Usage(
                        input_tokens=usage.prompt_tokens,
                        output_tokens=usage.completion_tokens,
                        total_tokens=usage.total_tokens,
                    )
                )
            return response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise
