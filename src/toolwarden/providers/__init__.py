"""
Toolwarden Model Providers

Provider adapters behind the ModelClient protocol the agent loop uses.

Usage:
    from toolwarden.providers import create_provider

    provider = create_provider("claude")
    turn = await provider.complete(transcript, tools)
"""

from toolwarden.providers.base import LLMProvider, ModelClient, ProviderConfig
from toolwarden.providers.claude import ClaudeProvider

__all__ = [
    "ClaudeProvider",
    "LLMProvider",
    "ModelClient",
    "ProviderConfig",
    "create_provider",
]


def create_provider(
    name: str = "claude",
    *,
    api_key: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
    system_prompt: str | None = None,
) -> LLMProvider:
    """Factory function to create a model provider by name.

    Args:
        name: Provider name ("claude" or "openai").
        api_key: Optional API key override.
        model: Optional model name override.
        base_url: Optional API endpoint override.
        system_prompt: Optional system prompt sent with every request.

    Returns:
        Configured LLMProvider instance.
    """
    name_lower = name.lower()

    if name_lower in ("claude", "anthropic"):
        config = ProviderConfig(
            api_key=api_key,
            model=model or ClaudeProvider.DEFAULT_MODEL,
            base_url=base_url,
            system_prompt=system_prompt,
        )
        return ClaudeProvider(config)
    elif name_lower == "openai":
        from toolwarden.providers.openai import OpenAIProvider

        config = ProviderConfig(
            api_key=api_key,
            model=model or OpenAIProvider.DEFAULT_MODEL,
            base_url=base_url,
            system_prompt=system_prompt,
        )
        return OpenAIProvider(config)
    else:
        raise ValueError(f"Unknown provider: {name}. Supported: claude, openai")
