"""
Data models for orchestration runs.

TransformOptions and OrchestrationProgress are immutable: options are fixed
for the whole run and every progress report is a fresh snapshot.
OrchestrationSession and RewriteHistory are the mutable state a caller holds
between calls.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

ProviderName = Literal["openai", "anthropic", "perplexity"]

PROVIDER_NAMES: tuple[str, ...] = ("openai", "anthropic", "perplexity")


class TransformMode(str, Enum):
    """What a run does with the selected chunks."""

    REWRITE = "rewrite"  # Replace each selected chunk with its transform
    EXPAND = "expand"  # Add content to each selected chunk, in place
    APPEND = "append"  # Generate new sections after the whole document


# Modes are always applied in this order within a run
MODE_ORDER = (TransformMode.REWRITE, TransformMode.EXPAND, TransformMode.APPEND)


class OrchestrationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransformOptions:
    """User-selected options carried unchanged to every call in a run."""

    instructions: str
    provider: ProviderName = "openai"
    content_source: str = ""
    use_content_source: bool = False
    style_source: str = ""
    use_style_source: bool = False
    modes: tuple[TransformMode, ...] = (TransformMode.REWRITE,)
    append_count: int = 0  # Number of new sections for APPEND

    @property
    def ordered_modes(self) -> list[TransformMode]:
        """Requested modes, deduplicated, in rewrite -> expand -> append order."""
        requested = {TransformMode(m) for m in self.modes}
        return [mode for mode in MODE_ORDER if mode in requested]


@dataclass(frozen=True)
class TransformRequest:
    """Everything a provider needs to transform one piece of text."""

    text: str
    instructions: str
    content_source: str = ""
    use_content_source: bool = False
    style_source: str = ""
    use_style_source: bool = False
    chunk_index: int | None = None
    total_chunks: int | None = None

    @property
    def is_partial(self) -> bool:
        """True when the text is one chunk of a larger document."""
        return self.total_chunks is not None and self.total_chunks > 1


@dataclass(frozen=True)
class OrchestrationProgress:
    """Snapshot of a run after a step completes."""

    current_chunk: int  # Steps finished so far
    total_chunks: int  # Steps in the run
    accumulated_result: str
    chunk_index: int | None = None  # Plan index of the step just finished
    failed_chunks: tuple[int, ...] = ()

    @property
    def percent(self) -> int:
        if not self.total_chunks:
            return 0
        return round(self.current_chunk / self.total_chunks * 100)

    def to_dict(self) -> dict:
        return {
            "current_chunk": self.current_chunk,
            "total_chunks": self.total_chunks,
            "percent": self.percent,
            "chunk_index": self.chunk_index,
            "failed_chunks": list(self.failed_chunks),
            "accumulated_result": self.accumulated_result,
        }


@dataclass
class ChunkFailure:
    """A chunk that kept its original text because its transform failed."""

    index: int | None  # None for the append step
    reason: str


@dataclass
class OrchestrationSession:
    """
    Per-run state shared between the orchestrator and its caller.

    The orchestrator is the only writer, except for cancel(), which the
    caller may invoke at any time. Cancellation is checked before each step.
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: OrchestrationState = OrchestrationState.IDLE
    progress: OrchestrationProgress | None = None
    failures: list[ChunkFailure] = field(default_factory=list)
    cancel_requested: bool = False

    def cancel(self) -> None:
        """Request that no further chunk is started."""
        self.cancel_requested = True


@dataclass
class RewriteHistory:
    """
    The last completed rewrite, kept for "rewrite the rewrite" refinement.

    pending_refinement holds instructions for a refinement in flight; it is
    cleared when the refinement succeeds.
    """

    original_text: str
    previous_instructions: str
    current_rewrite: str
    pending_refinement: str = ""

    def to_dict(self) -> dict:
        return {
            "original_text": self.original_text,
            "previous_instructions": self.previous_instructions,
            "current_rewrite": self.current_rewrite,
            "pending_refinement": self.pending_refinement,
        }
