"""
Partial reprocessing and "rewrite the rewrite" refinement.

Reprocessing reruns the rewrite on a subset of an existing plan; chunks
outside the selection are reused verbatim. Refinement sends the latest
rewrite back through the provider once, together with the original text
and the instructions that produced it.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from backend.config import get_settings
from backend.rewrite.chunking.models import Chunk, ChunkPlan
from backend.rewrite.dispatcher import TransformDispatcher
from backend.rewrite.errors import RefinementError
from backend.rewrite.models import (
    OrchestrationSession,
    RewriteHistory,
    TransformMode,
    TransformOptions,
)
from backend.rewrite.orchestrator import Orchestrator, ProgressCallback, resolve_selection
from backend.rewrite.prompts import build_refinement_instructions

logger = logging.getLogger(__name__)


def _default_options(instructions: str) -> TransformOptions:
    return TransformOptions(instructions=instructions, provider=get_settings().default_provider)


@dataclass(frozen=True)
class ChunkSelection:
    """A validated subset of a plan's chunks."""

    plan: ChunkPlan
    indices: tuple[int, ...]

    @property
    def chunks(self) -> list[Chunk]:
        return [self.plan[i] for i in self.indices]

    def __len__(self) -> int:
        return len(self.indices)


def select_chunks_for_reprocessing(plan: ChunkPlan, indices: Iterable[int]) -> ChunkSelection:
    """
    Validate chunk indices against a plan.

    Args:
        plan: Plan the indices refer to
        indices: Zero-based chunk indices; duplicates are collapsed

    Returns:
        ChunkSelection with sorted indices

    Raises:
        SelectionError: If no index is given or any index is out of range
    """
    return ChunkSelection(plan=plan, indices=tuple(resolve_selection(plan, list(indices))))


class ReprocessingController:
    """
    Reruns selected chunks and refines the last rewrite.

    Usage:
        controller = ReprocessingController()
        selection = select_chunks_for_reprocessing(plan, [1])
        result = await controller.reprocess(selection, "make it formal")

        refined = await controller.refine_last_rewrite(history, "less jargon")
    """

    def __init__(
        self,
        orchestrator: Orchestrator | None = None,
        dispatcher: TransformDispatcher | None = None,
    ):
        """
        Initialize the controller.

        Args:
            orchestrator: Orchestrator for reprocessing runs (creates one if not provided)
            dispatcher: Dispatcher for refinement calls (default: the orchestrator's)
        """
        self.orchestrator = orchestrator or Orchestrator(dispatcher=dispatcher)
        self.dispatcher = dispatcher or self.orchestrator.dispatcher

    async def reprocess(
        self,
        selection: ChunkSelection,
        instructions: str,
        base_options: TransformOptions | None = None,
        on_progress: ProgressCallback | None = None,
        session: OrchestrationSession | None = None,
    ) -> str:
        """
        Rewrite only the selected chunks.

        Args:
            selection: Chunks to rewrite
            instructions: Instructions for this pass
            base_options: Provider and reference material (mode is forced to rewrite)
            on_progress: Optional progress callback
            session: Session to record state in

        Returns:
            The reassembled document
        """
        options = replace(
            base_options or _default_options(instructions),
            instructions=instructions,
            modes=(TransformMode.REWRITE,),
            append_count=0,
        )

        logger.info(
            f"Reprocessing chunks {[i + 1 for i in selection.indices]} "
            f"of {len(selection.plan)}"
        )

        return await self.orchestrator.run(
            selection.plan,
            options,
            on_progress,
            selection=selection.indices,
            session=session,
        )

    async def refine_last_rewrite(
        self,
        history: RewriteHistory | None,
        refinement_instructions: str,
        base_options: TransformOptions | None = None,
    ) -> str:
        """
        Refine the latest rewrite with one more provider call.

        Args:
            history: The last completed rewrite
            refinement_instructions: What to change about it
            base_options: Provider and reference material

        Returns:
            The refined text, also stored as history.current_rewrite

        Raises:
            RefinementError: If there is nothing to refine or no instructions
            ChunkTransformError: If the provider call fails; history keeps
                its current rewrite and the pending instructions
        """
        if history is None or not history.current_rewrite.strip():
            raise RefinementError("There is no previous rewrite to refine yet.")
        if not refinement_instructions or not refinement_instructions.strip():
            raise RefinementError("Please describe how the rewrite should be refined.")

        options = base_options or _default_options(refinement_instructions)
        history.pending_refinement = refinement_instructions

        refined = await self.dispatcher.transform(
            history.current_rewrite,
            options,
            instructions=build_refinement_instructions(history, refinement_instructions),
            allow_resplit=False,
        )

        history.current_rewrite = refined
        history.pending_refinement = ""
        logger.info(f"Refined rewrite ({len(refined)} chars)")
        return refined
