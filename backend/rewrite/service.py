"""
Rewrite service: the entry point the API and CLI use.

Owns one Orchestrator and ReprocessingController, and remembers the last
completed rewrite so a refinement can follow it (last write wins).
"""

import logging
from typing import AsyncIterator, Iterable, Optional

from backend.rewrite.chunking.models import ChunkPlan
from backend.rewrite.chunking.planner import plan_chunks as _plan_chunks
from backend.rewrite.models import (
    OrchestrationProgress,
    OrchestrationSession,
    OrchestrationState,
    RewriteHistory,
    TransformOptions,
)
from backend.rewrite.orchestrator import Orchestrator, ProgressCallback
from backend.rewrite.reprocessing import ReprocessingController, select_chunks_for_reprocessing

logger = logging.getLogger(__name__)


class RewriteService:
    """
    Plans, runs, cancels, reprocesses and refines rewrites.

    Usage:
        service = get_service()
        plan = service.plan(document)
        result = await service.run(plan, TransformOptions(instructions="Make it formal"))
        refined = await service.refine("Shorter sentences, please")
    """

    def __init__(
        self,
        orchestrator: Orchestrator | None = None,
        controller: ReprocessingController | None = None,
    ):
        self.orchestrator = orchestrator or Orchestrator()
        self.controller = controller or ReprocessingController(orchestrator=self.orchestrator)
        self.last_history: RewriteHistory | None = None

    def plan(self, document: str, budget: int | None = None) -> ChunkPlan:
        return _plan_chunks(document, single_call_budget=budget)

    def create_session(self, session_id: str | None = None) -> OrchestrationSession:
        """Create a session, optionally with a caller-chosen ID."""
        if session_id:
            return OrchestrationSession(session_id=session_id)
        return OrchestrationSession()

    def _record(self, plan: ChunkPlan, options: TransformOptions, result: str) -> RewriteHistory:
        self.last_history = RewriteHistory(
            original_text=plan.document,
            previous_instructions=options.instructions,
            current_rewrite=result,
        )
        return self.last_history

    async def run(
        self,
        plan: ChunkPlan,
        options: TransformOptions,
        on_progress: ProgressCallback | None = None,
        selection: Optional[Iterable[int]] = None,
        session_id: str | None = None,
    ) -> str:
        """
        Run an orchestration and remember the result for refinement.

        Returns:
            The final text (partial if the run was cancelled)
        """
        session = self.create_session(session_id)
        result = await self.orchestrator.run(
            plan, options, on_progress, selection=selection, session=session
        )
        if session.state == OrchestrationState.COMPLETED:
            self._record(plan, options, result)
        return result

    async def stream(
        self,
        plan: ChunkPlan,
        options: TransformOptions,
        selection: Optional[Iterable[int]] = None,
        session: OrchestrationSession | None = None,
    ) -> AsyncIterator[OrchestrationProgress]:
        """Yield progress snapshots; the completed result is remembered for refinement."""
        session = session or self.create_session()
        last: OrchestrationProgress | None = None

        async for progress in self.orchestrator.stream(
            plan, options, selection=selection, session=session
        ):
            last = progress
            yield progress

        if last is not None and session.state == OrchestrationState.COMPLETED:
            self._record(plan, options, last.accumulated_result)

    def cancel(self, session_id: str | None = None) -> bool:
        cancelled = self.orchestrator.cancel(session_id)
        if cancelled:
            logger.info(f"Cancellation requested for {session_id or 'all sessions'}")
        return cancelled

    async def reprocess(
        self,
        plan: ChunkPlan,
        indices: Iterable[int],
        instructions: str,
        options: TransformOptions | None = None,
        on_progress: ProgressCallback | None = None,
        session: OrchestrationSession | None = None,
    ) -> str:
        """Rewrite the selected chunks of a plan, keeping the rest verbatim."""
        selection = select_chunks_for_reprocessing(plan, indices)
        session = session or self.create_session()
        result = await self.controller.reprocess(
            selection, instructions, options, on_progress, session=session
        )
        if session.state == OrchestrationState.COMPLETED:
            self._record(plan, TransformOptions(instructions=instructions), result)
        return result

    async def refine(
        self,
        instructions: str,
        history: RewriteHistory | None = None,
        options: TransformOptions | None = None,
    ) -> str:
        """
        Refine a rewrite; uses the last recorded history if none is given.

        A supplied history becomes the service's last history.
        """
        if history is not None:
            self.last_history = history
        return await self.controller.refine_last_rewrite(
            self.last_history, instructions, options
        )


# Module-level singleton
_service: RewriteService | None = None


def get_service() -> RewriteService:
    """Get the singleton rewrite service."""
    global _service
    if _service is None:
        _service = RewriteService()
    return _service


def plan_chunks(document: str, budget: int | None = None) -> ChunkPlan:
    """
    Plan how a document will be dispatched.

    Args:
        document: Full document text
        budget: Single-call token budget (default from settings)

    Returns:
        ChunkPlan; more than one chunk means a selection step is expected
    """
    return get_service().plan(document, budget)


async def run_orchestration(
    plan: ChunkPlan,
    options: TransformOptions,
    on_progress: ProgressCallback | None = None,
    selection: Optional[Iterable[int]] = None,
    session_id: str | None = None,
) -> str:
    """Run a plan and return the reassembled text."""
    return await get_service().run(plan, options, on_progress, selection, session_id)


def stream_orchestration(
    plan: ChunkPlan,
    options: TransformOptions,
    selection: Optional[Iterable[int]] = None,
    session: OrchestrationSession | None = None,
) -> AsyncIterator[OrchestrationProgress]:
    """Run a plan, yielding progress snapshots."""
    return get_service().stream(plan, options, selection, session)


def cancel_orchestration(session_id: str | None = None) -> bool:
    """Request cancellation of one running session, or all of them."""
    return get_service().cancel(session_id)


async def reprocess_selected(
    plan: ChunkPlan,
    indices: Iterable[int],
    instructions: str,
    options: TransformOptions | None = None,
) -> str:
    """Rewrite the chunks at the given indices; the rest are reused verbatim."""
    return await get_service().reprocess(plan, indices, instructions, options)


async def refine_last_rewrite(
    history: RewriteHistory | None,
    instructions: str,
    options: TransformOptions | None = None,
) -> str:
    """Refine a rewrite, falling back to the last one the service recorded."""
    return await get_service().refine(instructions, history, options)
