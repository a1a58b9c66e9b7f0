"""LLM providers.

Usage:
    from retort.llm import create_provider

    provider = create_provider(settings)
    response = provider.complete(system_prompt, messages)
"""

import logging
from typing import Literal, Optional

from retort.config import Settings, settings as default_settings
from retort.llm.base import ChatMessage, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

ProviderType = Literal["openai", "mock"]


def create_provider(config: Optional[Settings] = None) -> LLMProvider:
    """Factory function to create the configured LLM provider.

    Args:
        config: Settings to read the provider type and credentials from

    Returns:
        Configured LLMProvider instance

    Raises:
        ValueError: If the provider type is unknown or the API key is missing
    """
    config = config or default_settings
    provider_type = config.llm_provider.lower()

    if provider_type == "mock":
        from retort.llm.mock_provider import MockProvider

        return MockProvider(content=config.mock_llm_content)

    if provider_type == "openai":
        if not config.openai_api_key:
            raise ValueError("OPENAI_API_KEY not set in environment")

        from retort.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(api_key=config.openai_api_key, model=config.openai_model)

    raise ValueError(
        f"Unknown provider type: {config.llm_provider}. "
        f"Supported providers: openai, mock"
    )


__all__ = [
    "ChatMessage",
    "LLMProvider",
    "LLMResponse",
    "ProviderType",
    "create_provider",
]
