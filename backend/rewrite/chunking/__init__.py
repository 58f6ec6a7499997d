"""
Chunking package for splitting documents into provider-sized chunks.

Provides:
- Chunk / ChunkPlan / ChunkingPolicy data models
- Paragraph-then-sentence boundary splitting
- Single-call vs multi-chunk planning
"""

from backend.rewrite.chunking.models import (
    PARAGRAPH_SEPARATOR,
    Chunk,
    ChunkingPolicy,
    ChunkPlan,
)
from backend.rewrite.chunking.splitter import (
    split_text,
    split_paragraphs,
    split_sentences,
)
from backend.rewrite.chunking.planner import (
    plan_chunks,
    estimate_chunk_count,
    default_policy,
)

__all__ = [
    # Data models
    "PARAGRAPH_SEPARATOR",
    "Chunk",
    "ChunkingPolicy",
    "ChunkPlan",
    # Splitting
    "split_text",
    "split_paragraphs",
    "split_sentences",
    # Planning
    "plan_chunks",
    "estimate_chunk_count",
    "default_policy",
]
