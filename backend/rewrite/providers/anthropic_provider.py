"""
Anthropic text-transform provider implementation.

Sends transform requests through the Messages API and maps Anthropic
client errors onto ProviderError kinds.
"""

import logging

import anthropic
from anthropic import AsyncAnthropic

from backend.config import get_settings
from backend.rewrite.prompts import build_system_prompt, build_user_prompt
from backend.rewrite.providers.base import (
    ProviderError,
    ProviderErrorKind,
    TextTransformProvider,
    TransformRequest,
    rate_limit_retrying,
)

logger = logging.getLogger(__name__)

# Anthropic reports an oversized prompt as a 400 whose message says so
CONTEXT_ERROR_PHRASES = ("prompt is too long", "context window", "too many tokens")


class AnthropicTransformProvider(TextTransformProvider):
    """Anthropic provider using the configured Claude model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key (defaults to settings)
            model: Model name (defaults to settings)
        """
        settings = get_settings()
        self._api_key = api_key or settings.anthropic_api_key
        self._model = model or settings.anthropic_model
        self._max_tokens = settings.max_response_tokens
        self._timeout = settings.request_timeout_seconds
        self._max_retries = settings.provider_max_retries

        self._client: AsyncAnthropic | None = None

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> AsyncAnthropic:
        """Get or create asynchronous client."""
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self._api_key,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    def _classify(self, exc: anthropic.AnthropicError) -> ProviderError:
        """Translate an Anthropic client error into a ProviderError."""
        message = str(exc)
        if isinstance(exc, anthropic.BadRequestError) and any(
            phrase in message.lower() for phrase in CONTEXT_ERROR_PHRASES
        ):
            kind = ProviderErrorKind.CONTEXT_TOO_LARGE
        elif isinstance(exc, anthropic.RateLimitError):
            kind = ProviderErrorKind.RATE_LIMITED
        else:
            kind = ProviderErrorKind.UPSTREAM
        return ProviderError(kind, message, provider=self.name)

    async def _complete(self, request: TransformRequest) -> str:
        client = self._get_client()

        try:
            message = await client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=build_system_prompt(request),
                messages=[
                    {"role": "user", "content": build_user_prompt(request)}
                ],
            )
        except anthropic.AnthropicError as e:
            raise self._classify(e) from e

        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )

    async def transform(self, request: TransformRequest) -> str:
        """Transform text with a Messages API call, backing off on rate limits."""
        return await rate_limit_retrying(self._max_retries)(self._complete, request)
