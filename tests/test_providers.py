"""Tests for the provider adapters: vendor error mapping and rate-limit retries."""

from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest
from tenacity import wait_none

from backend.config import get_settings
from backend.rewrite.models import TransformRequest
from backend.rewrite.providers import (
    AnthropicTransformProvider,
    OpenAITransformProvider,
    PerplexityTransformProvider,
)
from backend.rewrite.providers.base import ProviderError, ProviderErrorKind

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


def http_response(status: int, url: str) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", url))


def openai_bad_request(message: str, code: str | None = None) -> openai.BadRequestError:
    return openai.BadRequestError(
        message,
        response=http_response(400, OPENAI_URL),
        body={"message": message, "code": code},
    )


def openai_rate_limit() -> openai.RateLimitError:
    return openai.RateLimitError(
        "Rate limit reached",
        response=http_response(429, OPENAI_URL),
        body={"message": "Rate limit reached", "code": "rate_limit_exceeded"},
    )


def anthropic_error(cls, status: int, message: str):
    return cls(
        message,
        response=http_response(status, ANTHROPIC_URL),
        body={"type": "error", "error": {"type": "invalid_request_error", "message": message}},
    )


@pytest.fixture
def request_() -> TransformRequest:
    return TransformRequest(text="Some text.", instructions="Make it formal")


@pytest.fixture
def no_backoff(monkeypatch):
    """Retry immediately instead of waiting between attempts."""
    monkeypatch.setattr(
        "backend.rewrite.providers.base.wait_exponential", lambda **kwargs: wait_none()
    )


class TestOpenAIErrors:
    def test_context_length_code(self):
        provider = OpenAITransformProvider(api_key="sk-test")

        error = provider._classify(
            openai_bad_request(
                "This model's maximum context length is 128000 tokens.",
                code="context_length_exceeded",
            )
        )

        assert error.kind == ProviderErrorKind.CONTEXT_TOO_LARGE
        assert error.provider == "openai"

    def test_other_bad_request_is_upstream(self):
        provider = OpenAITransformProvider(api_key="sk-test")

        error = provider._classify(openai_bad_request("Invalid model", code="model_not_found"))

        assert error.kind == ProviderErrorKind.UPSTREAM

    def test_rate_limit(self):
        provider = OpenAITransformProvider(api_key="sk-test")

        assert provider._classify(openai_rate_limit()).kind == ProviderErrorKind.RATE_LIMITED

    def test_timeout_is_upstream(self):
        provider = OpenAITransformProvider(api_key="sk-test")
        timeout = openai.APITimeoutError(request=httpx.Request("POST", OPENAI_URL))

        assert provider._classify(timeout).kind == ProviderErrorKind.UPSTREAM

    @pytest.mark.asyncio
    async def test_client_error_translated(self, request_):
        provider = OpenAITransformProvider(api_key="sk-test")

        async def create(**kwargs):
            raise openai_bad_request("too long", code="context_length_exceeded")

        provider._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.transform(request_)

        assert exc_info.value.kind == ProviderErrorKind.CONTEXT_TOO_LARGE

    @pytest.mark.asyncio
    async def test_completion_text_returned(self, request_):
        provider = OpenAITransformProvider(api_key="sk-test")
        sent = {}

        async def create(**kwargs):
            sent.update(kwargs)
            message = SimpleNamespace(content="Formal text.")
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        provider._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )

        assert await provider.transform(request_) == "Formal text."
        assert [m["role"] for m in sent["messages"]] == ["system", "user"]
        assert sent["model"] == provider.model_name


class TestAnthropicErrors:
    def test_prompt_too_long(self):
        provider = AnthropicTransformProvider(api_key="sk-ant-test")

        error = provider._classify(
            anthropic_error(
                anthropic.BadRequestError, 400, "prompt is too long: 210000 tokens > 200000 maximum"
            )
        )

        assert error.kind == ProviderErrorKind.CONTEXT_TOO_LARGE
        assert error.provider == "anthropic"

    def test_other_bad_request_is_upstream(self):
        provider = AnthropicTransformProvider(api_key="sk-ant-test")

        error = provider._classify(
            anthropic_error(anthropic.BadRequestError, 400, "max_tokens: field required")
        )

        assert error.kind == ProviderErrorKind.UPSTREAM

    def test_rate_limit(self):
        provider = AnthropicTransformProvider(api_key="sk-ant-test")

        error = provider._classify(
            anthropic_error(anthropic.RateLimitError, 429, "Number of requests exceeded")
        )

        assert error.kind == ProviderErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_text_blocks_joined(self, request_):
        provider = AnthropicTransformProvider(api_key="sk-ant-test")

        async def create(**kwargs):
            return SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text="Formal "),
                    SimpleNamespace(type="tool_use", text="ignored"),
                    SimpleNamespace(type="text", text="text."),
                ]
            )

        provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))

        assert await provider.transform(request_) == "Formal text."


class TestPerplexityErrors:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Request too long for model sonar", True),
            ("This exceeds the model's context window", True),
            ("Invalid model 'sonar-xl'", False),
        ],
    )
    def test_context_error_wording(self, message, expected):
        provider = PerplexityTransformProvider(api_key="pplx-test")

        assert provider._is_context_error(openai_bad_request(message)) is expected

    def test_uses_perplexity_endpoint(self):
        provider = PerplexityTransformProvider(api_key="pplx-test")

        assert provider.name == "perplexity"
        assert provider._base_url == get_settings().perplexity_base_url


class TestRateLimitRetry:
    @pytest.fixture
    def provider(self, monkeypatch, no_backoff) -> OpenAITransformProvider:
        monkeypatch.setenv("PROVIDER_MAX_RETRIES", "3")
        get_settings.cache_clear()
        return OpenAITransformProvider(api_key="sk-test")

    @pytest.mark.asyncio
    async def test_retries_until_success(self, provider, monkeypatch, request_):
        calls = []

        async def complete(request):
            calls.append(request)
            if len(calls) < 3:
                raise ProviderError(ProviderErrorKind.RATE_LIMITED, "slow down", "openai")
            return "done"

        monkeypatch.setattr(provider, "_complete", complete)

        assert await provider.transform(request_) == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, provider, monkeypatch, request_):
        calls = []

        async def complete(request):
            calls.append(request)
            raise ProviderError(ProviderErrorKind.RATE_LIMITED, "slow down", "openai")

        monkeypatch.setattr(provider, "_complete", complete)

        with pytest.raises(ProviderError) as exc_info:
            await provider.transform(request_)

        assert exc_info.value.kind == ProviderErrorKind.RATE_LIMITED
        assert len(calls) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind", [ProviderErrorKind.CONTEXT_TOO_LARGE, ProviderErrorKind.UPSTREAM]
    )
    async def test_other_failures_not_retried(self, provider, monkeypatch, request_, kind):
        calls = []

        async def complete(request):
            calls.append(request)
            raise ProviderError(kind, "nope", "openai")

        monkeypatch.setattr(provider, "_complete", complete)

        with pytest.raises(ProviderError) as exc_info:
            await provider.transform(request_)

        assert exc_info.value.kind == kind
        assert len(calls) == 1
