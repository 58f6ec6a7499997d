"""
Data models for document chunking.

A ChunkPlan is a derived, read-only view of a document: the ordered chunks
that will each fit one provider call. Plans are never edited in place;
changing the document or the budget produces a new plan, and rewriting a
chunk produces a new Chunk with the same index.
"""

from dataclasses import dataclass, field, replace
from typing import Sequence

from backend.rewrite.tokens import TokenEstimator, estimate_tokens

PARAGRAPH_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ChunkingPolicy:
    """
    Parameters shared by every call site that splits documents.

    max_chunk_tokens caps each chunk regardless of the single-call budget
    a caller passes in, so chunks keep headroom for instructions, reference
    text and the model's output.
    """

    max_chunk_tokens: int
    separator: str = PARAGRAPH_SEPARATOR
    estimator: TokenEstimator = estimate_tokens

    def chunk_budget(self, single_call_budget: int) -> int:
        """Per-chunk budget used when a document exceeds single_call_budget."""
        return min(self.max_chunk_tokens, single_call_budget)


@dataclass(frozen=True)
class Chunk:
    """A bounded segment of a document, identified by its position."""

    index: int  # 0-indexed position in reading order
    text: str
    token_estimate: int = 0

    def with_text(self, text: str, estimator: TokenEstimator = estimate_tokens) -> "Chunk":
        """Return a copy of this chunk holding new text."""
        return replace(self, text=text, token_estimate=estimator(text))

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "index": self.index,
            "text": self.text,
            "token_estimate": self.token_estimate,
        }


@dataclass(frozen=True)
class ChunkPlan:
    """
    Ordered chunks for one document under one budget.

    Joining the chunk texts with the separator reconstructs the document,
    modulo whitespace at the split points.
    """

    document: str
    chunks: tuple[Chunk, ...]
    chunk_budget: int
    separator: str = PARAGRAPH_SEPARATOR
    estimated_tokens: int = field(default=0, compare=False)

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self):
        return iter(self.chunks)

    def __getitem__(self, index: int) -> Chunk:
        return self.chunks[index]

    @property
    def requires_selection(self) -> bool:
        """Multi-chunk plans are shown to the user for chunk selection."""
        return len(self.chunks) > 1

    @property
    def texts(self) -> list[str]:
        return [chunk.text for chunk in self.chunks]

    def reassemble(self) -> str:
        """Join chunk texts back into one document."""
        return self.separator.join(self.texts)

    @classmethod
    def from_texts(
        cls,
        texts: Sequence[str],
        chunk_budget: int = 0,
        separator: str = PARAGRAPH_SEPARATOR,
        estimator: TokenEstimator = estimate_tokens,
    ) -> "ChunkPlan":
        """Rebuild a plan from chunk texts, e.g. ones a client sends back."""
        chunks = tuple(
            Chunk(index=i, text=text, token_estimate=estimator(text))
            for i, text in enumerate(texts)
        )
        document = separator.join(texts)
        return cls(
            document=document,
            chunks=chunks,
            chunk_budget=chunk_budget,
            separator=separator,
            estimated_tokens=estimator(document),
        )
