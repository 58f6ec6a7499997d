"""
Abstract base class for text-transform providers.

Defines the interface that all providers must implement, so the rewrite
core can send a chunk to OpenAI, Anthropic or Perplexity without knowing
which one it is talking to. Vendor errors are translated into a
ProviderError with a typed kind at this boundary.
"""

from abc import ABC, abstractmethod
from enum import Enum

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from backend.rewrite.models import TransformRequest


class ProviderErrorKind(str, Enum):
    CONTEXT_TOO_LARGE = "context_too_large"  # Input exceeded the context window
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"  # Anything else, including timeouts


class ProviderError(Exception):
    """A provider call failed."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: str = "",
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        if self.provider:
            return f"{self.provider}: {self.message}"
        return self.message


class TextTransformProvider(ABC):
    """
    Abstract base class for text-transform providers.

    Implementations must provide:
    - A provider name
    - The model identifier in use
    - An async transform call raising ProviderError on failure
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider identifier (e.g., 'openai')."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier used by this provider."""
        pass

    @abstractmethod
    async def transform(self, request: TransformRequest) -> str:
        """
        Transform text according to the request's instructions.

        Args:
            request: Text, instructions and reference material

        Returns:
            The transformed text

        Raises:
            ProviderError: If the provider call fails
        """
        pass


def is_rate_limited(exc: BaseException) -> bool:
    """Retry predicate: only rate-limit failures are worth retrying."""
    return isinstance(exc, ProviderError) and exc.kind == ProviderErrorKind.RATE_LIMITED


def rate_limit_retrying(attempts: int) -> AsyncRetrying:
    """
    Build the retry policy providers wrap their API calls in.

    Rate-limited calls back off exponentially; every other failure is
    raised on the first attempt.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception(is_rate_limited),
        reraise=True,
    )
