"""
Perplexity text-transform provider implementation.

Perplexity exposes an OpenAI-compatible chat completions API, so this
provider reuses the OpenAI client pointed at Perplexity's endpoint.
"""

import logging

import openai

from backend.config import get_settings
from backend.rewrite.providers.openai_provider import OpenAITransformProvider

logger = logging.getLogger(__name__)

# Perplexity reports context overflows as plain 400s; match on the wording here
# so nothing outside this adapter depends on it.
CONTEXT_ERROR_PHRASES = ("context length", "context window", "too many tokens", "too long")


class PerplexityTransformProvider(OpenAITransformProvider):
    """Perplexity provider using the sonar model by default."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ):
        settings = get_settings()
        super().__init__(
            api_key=api_key or settings.perplexity_api_key,
            model=model or settings.perplexity_model,
            base_url=settings.perplexity_base_url,
            temperature=settings.perplexity_temperature,
        )

    @property
    def name(self) -> str:
        return "perplexity"

    def _is_context_error(self, exc: openai.BadRequestError) -> bool:
        if super()._is_context_error(exc):
            return True
        message = str(exc).lower()
        return any(phrase in message for phrase in CONTEXT_ERROR_PHRASES)
