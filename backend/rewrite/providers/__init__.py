"""
Text-transform providers package.

Provides a pluggable interface for different LLM backends
(OpenAI, Anthropic, Perplexity) with consistent APIs and a typed
error taxonomy.
"""

from functools import lru_cache

from backend.rewrite.providers.base import (
    ProviderError,
    ProviderErrorKind,
    TextTransformProvider,
    TransformRequest,
)
from backend.rewrite.providers.openai_provider import OpenAITransformProvider
from backend.rewrite.providers.anthropic_provider import AnthropicTransformProvider
from backend.rewrite.providers.perplexity_provider import PerplexityTransformProvider

PROVIDERS: dict[str, type[TextTransformProvider]] = {
    "openai": OpenAITransformProvider,
    "anthropic": AnthropicTransformProvider,
    "perplexity": PerplexityTransformProvider,
}


@lru_cache
def get_provider(name: str) -> TextTransformProvider:
    """Get cached provider instance by name."""
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Invalid LLM provider: {name}") from None
    return provider_cls()


__all__ = [
    "ProviderError",
    "ProviderErrorKind",
    "TextTransformProvider",
    "TransformRequest",
    "OpenAITransformProvider",
    "AnthropicTransformProvider",
    "PerplexityTransformProvider",
    "PROVIDERS",
    "get_provider",
]
