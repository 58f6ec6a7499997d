"""
Boundary splitting for documents that exceed a token budget.

Paragraphs are packed greedily into chunks. A paragraph that is too large
on its own is split on sentence boundaries with the same greedy rule. A
single sentence that is still over budget is returned as its own chunk:
there is no word-level fallback, so that is the one case where a chunk may
exceed the budget.
"""

import logging
import re

from backend.rewrite.chunking.models import PARAGRAPH_SEPARATOR
from backend.rewrite.tokens import TokenEstimator, estimate_tokens

logger = logging.getLogger(__name__)

# Blank line (possibly containing whitespace) between paragraphs
PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")

# Whitespace following sentence-ending punctuation
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")

SENTENCE_SEPARATOR = " "


def split_paragraphs(text: str) -> list[str]:
    """Split text on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in PARAGRAPH_BOUNDARY.split(text) if p.strip()]


def split_sentences(text: str) -> list[str]:
    """Split text after '.', '!' or '?' followed by whitespace."""
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s.strip()]


def _pack(
    pieces: list[str],
    max_tokens: int,
    separator: str,
    estimator: TokenEstimator,
) -> list[str]:
    """Greedily join pieces while the joined text stays within max_tokens."""
    chunks = []
    current = ""

    for piece in pieces:
        if not current:
            current = piece
            continue

        candidate = f"{current}{separator}{piece}"
        if estimator(candidate) <= max_tokens:
            current = candidate
        else:
            chunks.append(current)
            current = piece

    if current:
        chunks.append(current)

    return chunks


def split_text(
    text: str,
    max_tokens: int,
    estimator: TokenEstimator = estimate_tokens,
    separator: str = PARAGRAPH_SEPARATOR,
) -> list[str]:
    """
    Split text into ordered chunks of at most max_tokens each.

    Args:
        text: The text to split
        max_tokens: Token budget per chunk
        estimator: Token estimator used to measure candidates
        separator: String placed between paragraphs inside a chunk

    Returns:
        List of chunk texts in document order. Joining them with the
        separator reproduces the paragraphs of the input.
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")

    chunks: list[str] = []
    pending: list[str] = []

    for paragraph in split_paragraphs(text):
        if estimator(paragraph) <= max_tokens:
            pending.append(paragraph)
            continue

        # Flush what we have so the oversized paragraph keeps its position
        chunks.extend(_pack(pending, max_tokens, separator, estimator))
        pending = []

        sentence_chunks = _pack(
            split_sentences(paragraph), max_tokens, SENTENCE_SEPARATOR, estimator
        )
        for sentence_chunk in sentence_chunks:
            if estimator(sentence_chunk) > max_tokens:
                logger.debug(
                    f"Single sentence of ~{estimator(sentence_chunk)} tokens "
                    f"exceeds budget of {max_tokens}; keeping it whole"
                )
        chunks.extend(sentence_chunks)

    chunks.extend(_pack(pending, max_tokens, separator, estimator))
    return chunks
