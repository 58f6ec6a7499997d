"""
Shared pytest fixtures for the rewriter tests.

No test talks to a real provider: FakeProvider returns scripted results,
records every request, and can fail or overflow on chosen inputs.
"""

import asyncio
import random
from typing import Callable

import pytest

from backend.config import get_settings
from backend.rewrite.chunking.models import ChunkPlan
from backend.rewrite.dispatcher import TransformDispatcher
from backend.rewrite.models import TransformRequest
from backend.rewrite.orchestrator import Orchestrator
from backend.rewrite.providers.base import (
    ProviderError,
    ProviderErrorKind,
    TextTransformProvider,
)


class FakeProvider(TextTransformProvider):
    """
    Scripted provider.

    By default returns the input upper-cased. Behaviour can be changed per
    call with:
        fail_on: texts (or substrings) that raise an UPSTREAM error
        overflow_over: inputs longer than this many chars raise CONTEXT_TOO_LARGE
        responder: custom function from request to output
        latency: fixed delay, or (min, max) for a random delay
    """

    def __init__(
        self,
        name: str = "openai",
        fail_on: tuple[str, ...] = (),
        overflow_over: int | None = None,
        responder: Callable[[TransformRequest], str] | None = None,
        latency: float | tuple[float, float] = 0.0,
    ):
        self._name = name
        self.fail_on = fail_on
        self.overflow_over = overflow_over
        self.responder = responder
        self.latency = latency
        self.requests: list[TransformRequest] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def model_name(self) -> str:
        return "fake-model"

    @property
    def texts(self) -> list[str]:
        return [r.text for r in self.requests]

    async def transform(self, request: TransformRequest) -> str:
        self.requests.append(request)

        if isinstance(self.latency, tuple):
            await asyncio.sleep(random.uniform(*self.latency))
        elif self.latency:
            await asyncio.sleep(self.latency)

        if self.overflow_over is not None and len(request.text) > self.overflow_over:
            raise ProviderError(
                ProviderErrorKind.CONTEXT_TOO_LARGE, "maximum context length exceeded", self._name
            )
        if any(marker in request.text for marker in self.fail_on):
            raise ProviderError(ProviderErrorKind.UPSTREAM, "service unavailable", self._name)

        if self.responder:
            return self.responder(request)
        return request.text.upper()


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Isolate tests from the developer's .env and cached settings."""
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "PERPLEXITY_API_KEY", "DEFAULT_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def dispatcher(fake_provider) -> TransformDispatcher:
    return TransformDispatcher(provider_factory=lambda name: fake_provider)


@pytest.fixture
def orchestrator(dispatcher) -> Orchestrator:
    return Orchestrator(dispatcher=dispatcher, cooldowns={})


@pytest.fixture
def three_chunk_plan() -> ChunkPlan:
    return ChunkPlan.from_texts(
        ["First chunk text.", "Second chunk text.", "Third chunk text."]
    )


@pytest.fixture
def make_document() -> Callable[[int], str]:
    """Build a document of equal-width (40 char), distinguishable paragraphs."""

    def build(paragraphs: int) -> str:
        return "\n\n".join(f"Para {i:02d} " + "a" * 32 for i in range(paragraphs))

    return build
