"""
Chunk planning: decide between one provider call and a multi-chunk run.

Planning is pure. It returns the data a caller needs to show a chunk
selector; it never dispatches anything.
"""

import logging
import math

from backend.config import get_settings
from backend.rewrite.chunking.models import Chunk, ChunkingPolicy, ChunkPlan
from backend.rewrite.chunking.splitter import split_text
from backend.rewrite.errors import PlanningError
from backend.rewrite.tokens import get_estimator

logger = logging.getLogger(__name__)


def default_policy() -> ChunkingPolicy:
    """Build the chunking policy from settings."""
    settings = get_settings()
    return ChunkingPolicy(
        max_chunk_tokens=settings.chunk_max_tokens,
        estimator=get_estimator(settings.token_estimator),
    )


def plan_chunks(
    document: str,
    single_call_budget: int | None = None,
    policy: ChunkingPolicy | None = None,
) -> ChunkPlan:
    """
    Plan how a document will be dispatched.

    Args:
        document: Full document text
        single_call_budget: Largest estimate that is sent as one call
            (default from settings)
        policy: Chunking policy (default from settings)

    Returns:
        ChunkPlan with one chunk equal to the document when it fits,
        otherwise the boundary-split chunks with zero-based indices

    Raises:
        PlanningError: If the document is empty or the budget is not positive
    """
    settings = get_settings()
    policy = policy or default_policy()
    if single_call_budget is None:
        single_call_budget = settings.single_call_budget_tokens

    if not document or not document.strip():
        raise PlanningError("Please enter or upload text to process.")
    if single_call_budget < 1:
        raise PlanningError(f"Token budget must be positive, got {single_call_budget}")

    estimator = policy.estimator
    total_tokens = estimator(document)

    if total_tokens <= single_call_budget:
        return ChunkPlan(
            document=document,
            chunks=(Chunk(index=0, text=document, token_estimate=total_tokens),),
            chunk_budget=single_call_budget,
            separator=policy.separator,
            estimated_tokens=total_tokens,
        )

    chunk_budget = policy.chunk_budget(single_call_budget)
    pieces = split_text(document, chunk_budget, estimator, policy.separator)

    chunks = tuple(
        Chunk(index=i, text=piece, token_estimate=estimator(piece))
        for i, piece in enumerate(pieces)
    )

    logger.info(
        f"Planned {len(chunks)} chunks for ~{total_tokens} tokens "
        f"(chunk budget {chunk_budget})"
    )

    return ChunkPlan(
        document=document,
        chunks=chunks,
        chunk_budget=chunk_budget,
        separator=policy.separator,
        estimated_tokens=total_tokens,
    )


def estimate_chunk_count(
    document: str,
    single_call_budget: int | None = None,
    policy: ChunkingPolicy | None = None,
) -> int:
    """
    Estimate how many chunks a document will produce.

    Cheaper than planning; used to warn the user before a large run.

    Args:
        document: The text to estimate
        single_call_budget: Single-call budget (default from settings)
        policy: Chunking policy (default from settings)

    Returns:
        Estimated number of chunks (at least 1)
    """
    settings = get_settings()
    policy = policy or default_policy()
    if single_call_budget is None:
        single_call_budget = settings.single_call_budget_tokens

    total_tokens = policy.estimator(document)
    if total_tokens <= single_call_budget:
        return 1

    return max(1, math.ceil(total_tokens / policy.chunk_budget(single_call_budget)))
