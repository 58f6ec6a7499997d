"""
OpenAI text-transform provider implementation.

Sends transform requests as chat completions and maps OpenAI client errors
onto ProviderError kinds.
"""

import logging

import openai
from openai import AsyncOpenAI

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

CONTEXT_LENGTH_CODE = "context_length_exceeded"


class OpenAITransformProvider(TextTransformProvider):
    """
    OpenAI provider using gpt-4o by default.

    Subclasses can point the same client at any OpenAI-compatible endpoint
    by overriding the constructor arguments.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (defaults to settings)
            model: Model name (defaults to settings)
            base_url: Alternative API endpoint
            temperature: Sampling temperature (defaults to settings)
        """
        settings = get_settings()
        self._api_key = api_key or settings.openai_api_key
        self._model = model or settings.openai_model
        self._base_url = base_url
        self._temperature = (
            temperature if temperature is not None else settings.openai_temperature
        )
        self._max_tokens = settings.max_response_tokens
        self._timeout = settings.request_timeout_seconds
        self._max_retries = settings.provider_max_retries

        # Lazy-initialized client
        self._client: AsyncOpenAI | None = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> AsyncOpenAI:
        """Get or create asynchronous client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,  # Retries are handled by rate_limit_retrying
            )
        return self._client

    def _is_context_error(self, exc: openai.BadRequestError) -> bool:
        return getattr(exc, "code", None) == CONTEXT_LENGTH_CODE

    def _classify(self, exc: openai.OpenAIError) -> ProviderError:
        """Translate an OpenAI client error into a ProviderError."""
        if isinstance(exc, openai.BadRequestError) and self._is_context_error(exc):
            kind = ProviderErrorKind.CONTEXT_TOO_LARGE
        elif isinstance(exc, openai.RateLimitError):
            kind = ProviderErrorKind.RATE_LIMITED
        else:
            kind = ProviderErrorKind.UPSTREAM
        return ProviderError(kind, str(exc), provider=self.name)

    async def _complete(self, request: TransformRequest) -> str:
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": build_system_prompt(request)},
                    {"role": "user", "content": build_user_prompt(request)},
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except openai.OpenAIError as e:
            raise self._classify(e) from e

        return response.choices[0].message.content or ""

    async def transform(self, request: TransformRequest) -> str:
        """Transform text with a chat completion, backing off on rate limits."""
        return await rate_limit_retrying(self._max_retries)(self._complete, request)
