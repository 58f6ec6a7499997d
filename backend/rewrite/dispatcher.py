"""
Transform dispatch: one provider call per chunk, with context-overflow fallback.

When a provider reports that the input exceeded its context window, the
chunk is re-split at half the previous budget and each piece is sent on its
own. The recursion stops at the sentence level: a piece that cannot be
split further is returned as an inline error marker plus its original text.
Every other provider failure is raised as ChunkTransformError for the
orchestrator to annotate.
"""

import logging
from dataclasses import replace
from typing import Callable

from backend.rewrite.chunking.models import PARAGRAPH_SEPARATOR
from backend.rewrite.chunking.planner import default_policy
from backend.rewrite.chunking.splitter import split_text
from backend.rewrite.errors import ChunkTransformError, format_chunk_error
from backend.rewrite.models import TransformOptions
from backend.rewrite.providers import get_provider
from backend.rewrite.providers.base import (
    ProviderError,
    ProviderErrorKind,
    TextTransformProvider,
    TransformRequest,
)
from backend.rewrite.tokens import TokenEstimator

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str], TextTransformProvider]

CONTEXT_LIMIT_REASON = "input exceeds the provider's context limit"
EMPTY_RESULT_REASON = "the provider returned no text"


class TransformDispatcher:
    """
    Sends text to the provider selected in TransformOptions.

    Usage:
        dispatcher = TransformDispatcher()
        result = await dispatcher.transform(chunk.text, options, chunk_index=0, total_chunks=3)
    """

    def __init__(
        self,
        provider_factory: ProviderFactory | None = None,
        estimator: TokenEstimator | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            provider_factory: Maps a provider name to a provider instance
                (default: cached providers from get_provider)
            estimator: Token estimator used when re-splitting (default: the
                planning policy's, so both measure text the same way)
        """
        self._provider_factory = provider_factory or get_provider
        self._estimator = estimator or default_policy().estimator

    def _build_request(
        self,
        text: str,
        options: TransformOptions,
        instructions: str | None,
        chunk_index: int | None,
        total_chunks: int | None,
    ) -> TransformRequest:
        return TransformRequest(
            text=text,
            instructions=instructions if instructions is not None else options.instructions,
            content_source=options.content_source,
            use_content_source=options.use_content_source,
            style_source=options.style_source,
            use_style_source=options.use_style_source,
            chunk_index=chunk_index,
            total_chunks=total_chunks,
        )

    async def transform(
        self,
        text: str,
        options: TransformOptions,
        *,
        instructions: str | None = None,
        chunk_index: int | None = None,
        total_chunks: int | None = None,
        allow_resplit: bool = True,
    ) -> str:
        """
        Transform one chunk of text.

        Args:
            text: Text to transform
            options: Run options (provider, instructions, reference material)
            instructions: Override for options.instructions (expand, append
                and refinement calls build their own)
            chunk_index: Plan index of the chunk, for prompts and errors
            total_chunks: Number of chunks in the plan
            allow_resplit: Re-split on context overflow; calls that must see
                the whole text as one unit pass False

        Returns:
            Transformed text. May contain inline error markers for pieces
            that could not be split small enough.

        Raises:
            ChunkTransformError: If the provider call fails for any other
                reason, or returns no text
        """
        provider = self._provider_factory(options.provider)
        request = self._build_request(text, options, instructions, chunk_index, total_chunks)

        try:
            result = await provider.transform(request)
        except ProviderError as e:
            if e.kind == ProviderErrorKind.CONTEXT_TOO_LARGE and allow_resplit:
                logger.warning(
                    f"Chunk {_label(chunk_index)} exceeded {provider.name} context; re-splitting"
                )
                budget = self._estimator(text) // 2
                return await self._transform_resplit(
                    provider, text, request, budget, chunk_index
                )
            raise ChunkTransformError(str(e), chunk_index) from e

        return _checked(result, chunk_index)

    async def _transform_resplit(
        self,
        provider: TextTransformProvider,
        text: str,
        request: TransformRequest,
        budget: int,
        chunk_index: int | None,
    ) -> str:
        """Split text at budget and transform each piece, halving again on overflow."""
        pieces = split_text(text, budget, self._estimator) if budget >= 1 else [text]

        if len(pieces) <= 1:
            # Single oversized sentence: nothing smaller to send
            logger.warning(
                f"Chunk {_label(chunk_index)} cannot be split below ~{self._estimator(text)} tokens"
            )
            return f"{format_chunk_error(chunk_index, CONTEXT_LIMIT_REASON)}\n\n{text}"

        logger.info(
            f"Re-split chunk {_label(chunk_index)} into {len(pieces)} pieces at {budget} tokens"
        )

        results = []
        for piece in pieces:
            piece_request = replace(request, text=piece)
            try:
                results.append(_checked(await provider.transform(piece_request), chunk_index))
            except ProviderError as e:
                if e.kind != ProviderErrorKind.CONTEXT_TOO_LARGE:
                    raise ChunkTransformError(str(e), chunk_index) from e
                results.append(
                    await self._transform_resplit(
                        provider,
                        piece,
                        piece_request,
                        self._estimator(piece) // 2,
                        chunk_index,
                    )
                )

        return PARAGRAPH_SEPARATOR.join(results)


def _label(chunk_index: int | None) -> str:
    return "-" if chunk_index is None else str(chunk_index + 1)


def _checked(result: str, chunk_index: int | None) -> str:
    """Reject a blank provider result."""
    if not result or not result.strip():
        raise ChunkTransformError(EMPTY_RESULT_REASON, chunk_index)
    return result
