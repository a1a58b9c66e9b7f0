"""Offline provider that returns fixed text without any network call."""

from retort.llm.base import ChatMessage, LLMProvider, LLMResponse


class MockProvider(LLMProvider):
    """Returns ``content`` for every request and remembers what it was sent."""

    def __init__(self, content: str = "This is a mocked response."):
        self.content = content
        self.requests: list[tuple[str, list[ChatMessage]]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "mock"

    def complete(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        max_tokens: int = 8192,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.requests.append((system_prompt, list(messages)))
        return LLMResponse(
            content=self.content,
            prompt_tokens=0,
            completion_tokens=0,
            total_tokens=0,
            finish_reason="stop",
            model=self.model_name,
            duration_ms=0.0,
        )
