"""OpenAI LLM provider implementation."""

import logging
import time
from typing import Any

from openai import OpenAI, OpenAIError

from retort.exceptions import LLMProviderError
from retort.llm.base import ChatMessage, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider using the OpenAI Python SDK chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
    ):
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o-mini)
        """
        if not api_key:
            raise ValueError("OpenAI API key is required")

        self.client = OpenAI(api_key=api_key)
        self._model = model
        logger.info(f"Initialized OpenAI provider with model: {model}")

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        start_time = time.time()

        request_params: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                *(message.to_dict() for message in messages),
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = self.client.chat.completions.create(**request_params)
        except OpenAIError as e:
            raise LLMProviderError(f"OpenAI request failed: {e}") from e
        duration_ms = (time.time() - start_time) * 1000

        content = response.choices[0].message.content or ""

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        logger.debug(
            f"OpenAI completion: {total_tokens} tokens in {duration_ms:.0f}ms"
        )

        return LLMResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            finish_reason=response.choices[0].finish_reason or "unknown",
            model=response.model,
            duration_ms=duration_ms,
            raw_response=response,
        )
