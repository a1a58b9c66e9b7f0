"""Base protocol and types for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ChatMessage:
    """A single message in the conversation sent to the model."""

    role: str  # 'user' or 'assistant'
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Standardized response from LLM providers.

    Attributes:
        content: The generated text
        prompt_tokens: Number of tokens in the prompt
        completion_tokens: Number of tokens in the completion
        total_tokens: Total tokens used
        finish_reason: Why generation stopped (stop, length, error, etc.)
        model: The actual model used (may differ from requested)
        duration_ms: Time taken for the API call in milliseconds
        raw_response: Provider-specific raw response for debugging
    """

    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    finish_reason: str
    model: str
    duration_ms: float
    raw_response: Any = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openai', 'mock')."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate the next assistant message.

        Args:
            system_prompt: System message setting the context
            messages: Conversation so far, oldest first, ending with the user turn
            max_tokens: Maximum tokens in the response
            temperature: Sampling temperature

        Returns:
            LLMResponse with the completion and metadata

        Raises:
            LLMProviderError: When the provider cannot produce a response
        """
        ...
