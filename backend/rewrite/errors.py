"""
Exception types for the rewrite core.

Errors that make a whole operation meaningless (no document, no
instructions, no selection, no history) are raised before any provider call.
ChunkTransformError is the only per-chunk failure; the orchestrator turns it
into an inline annotation instead of aborting the run.
"""


class RewriteError(Exception):
    """Base class for rewrite errors surfaced to the user."""


class PlanningError(RewriteError):
    """The document, budget or run request is invalid."""


class SelectionError(RewriteError):
    """A chunk selection is empty or refers to chunks outside the plan."""


class RefinementError(RewriteError):
    """Refinement was requested without a usable rewrite history."""


class ChunkTransformError(RewriteError):
    """A single chunk could not be transformed."""

    def __init__(self, reason: str, chunk_index: int | None = None):
        self.reason = reason
        self.chunk_index = chunk_index
        if chunk_index is None:
            super().__init__(reason)
        else:
            super().__init__(f"Chunk {chunk_index + 1}: {reason}")


def format_chunk_error(chunk_index: int | None, reason: str) -> str:
    """
    Build the inline marker placed in the output for a failed chunk.

    Chunk numbers are 1-based to match what the user sees in the chunk list.
    """
    if chunk_index is None:
        return f"[Text could not be transformed: {reason}]"
    return f"[Chunk {chunk_index + 1} could not be transformed: {reason}]"
