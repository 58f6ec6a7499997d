"""
Orchestrator for multi-chunk transform runs.

Coordinates:
1. Validation of the run request (modes, selection, instructions)
2. Sequential dispatch of one transform per step, in document order
3. Provider cooldowns between calls
4. Inline annotation of failed chunks (the run always continues; markers
   are kept apart from the chunk text and never sent to a provider)
5. Progress snapshots after every step
6. Cooperative cancellation between steps

Steps are built in the fixed order rewrite -> expand -> append, so the
append prompt sees the already rewritten and expanded document.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Iterable, Optional

from backend.config import get_settings
from backend.rewrite.chunking.models import ChunkPlan
from backend.rewrite.dispatcher import TransformDispatcher
from backend.rewrite.errors import (
    ChunkTransformError,
    PlanningError,
    SelectionError,
    format_chunk_error,
)
from backend.rewrite.models import (
    ChunkFailure,
    OrchestrationProgress,
    OrchestrationSession,
    OrchestrationState,
    TransformMode,
    TransformOptions,
)
from backend.rewrite.prompts import build_append_instructions, build_expand_instructions

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


@dataclass(frozen=True)
class _Step:
    mode: TransformMode
    index: int | None  # Plan index; None for the append step


def resolve_selection(plan: ChunkPlan, selection: Optional[Iterable[int]]) -> list[int]:
    """
    Validate a selection against a plan.

    Args:
        plan: The plan being processed
        selection: Chunk indices, or None for every chunk

    Returns:
        Sorted, deduplicated indices

    Raises:
        SelectionError: If the selection is empty or out of range
    """
    if selection is None:
        return list(range(len(plan)))

    indices = sorted(set(selection))
    if not indices:
        raise SelectionError("Please select at least one chunk to process.")

    out_of_range = [i for i in indices if i < 0 or i >= len(plan)]
    if out_of_range:
        raise SelectionError(
            f"Chunk indices out of range for a {len(plan)}-chunk plan: {out_of_range}"
        )

    return indices


class Orchestrator:
    """
    Runs transform steps over a ChunkPlan, strictly one at a time.

    Usage:
        orchestrator = Orchestrator()

        # Rewrite every chunk, reporting progress
        result = await orchestrator.run(plan, options, on_progress=print_progress)

        # Rewrite chunks 0 and 2 only; the rest are kept verbatim
        result = await orchestrator.run(plan, options, selection=[0, 2])

        # Consume snapshots directly
        async for progress in orchestrator.stream(plan, options):
            ...
    """

    def __init__(
        self,
        dispatcher: TransformDispatcher | None = None,
        cooldowns: dict[str, float] | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            dispatcher: TransformDispatcher instance (creates one if not provided)
            cooldowns: Seconds to wait between calls, per provider
                (default from settings)
        """
        self.dispatcher = dispatcher or TransformDispatcher()
        if cooldowns is None:
            cooldowns = get_settings().provider_cooldowns
        self.cooldowns = cooldowns
        self._sessions: dict[str, OrchestrationSession] = {}

    def _build_steps(
        self, plan: ChunkPlan, options: TransformOptions, indices: list[int]
    ) -> list[_Step]:
        steps = []
        for mode in options.ordered_modes:
            if mode == TransformMode.APPEND:
                steps.append(_Step(mode, None))
            else:
                steps.extend(_Step(mode, i) for i in indices)
        return steps

    def validate(
        self,
        plan: ChunkPlan,
        options: TransformOptions,
        selection: Optional[Iterable[int]],
        session: OrchestrationSession | None = None,
    ) -> list[int]:
        """Reject runs that cannot do anything useful before any call is made."""
        if session is not None and session.session_id in self._sessions:
            raise PlanningError(f"Session {session.session_id} is already running.")
        if not len(plan):
            raise PlanningError("The plan has no chunks to process.")
        if not options.instructions or not options.instructions.strip():
            raise PlanningError("Please provide instructions for how to transform the text.")

        modes = options.ordered_modes
        if not modes:
            raise PlanningError("Select at least one processing mode.")

        if TransformMode.APPEND in modes and options.append_count < 1:
            raise SelectionError("Choose how many new sections to append (at least 1).")

        return resolve_selection(plan, selection)

    def _accumulated(
        self,
        texts: list[str],
        markers: dict[int, str],
        separator: str,
        high_water: int,
        appended: list[str],
    ) -> str:
        """Join the processed prefix, placing each failure marker before its chunk."""
        parts = [
            f"{markers[i]}\n\n{text}" if i in markers else text
            for i, text in enumerate(texts[: high_water + 1])
        ]
        return separator.join(parts + appended)

    async def _execute(
        self,
        step: _Step,
        texts: list[str],
        plan: ChunkPlan,
        options: TransformOptions,
    ) -> str:
        """Run one step and return its output text."""
        if step.mode == TransformMode.REWRITE:
            return await self.dispatcher.transform(
                texts[step.index],
                options,
                chunk_index=step.index,
                total_chunks=len(plan),
            )

        if step.mode == TransformMode.EXPAND:
            return await self.dispatcher.transform(
                texts[step.index],
                options,
                instructions=build_expand_instructions(options.instructions),
                chunk_index=step.index,
                total_chunks=len(plan),
            )

        return await self.dispatcher.transform(
            plan.separator.join(texts),
            options,
            instructions=build_append_instructions(options.instructions, options.append_count),
            allow_resplit=False,
        )

    async def _cooldown(self, options: TransformOptions, session: OrchestrationSession) -> None:
        seconds = self.cooldowns.get(options.provider, 0.0)
        if seconds > 0 and not session.cancel_requested:
            logger.info(f"Waiting {seconds:g}s before the next {options.provider} call")
            await asyncio.sleep(seconds)

    async def stream(
        self,
        plan: ChunkPlan,
        options: TransformOptions,
        *,
        selection: Optional[Iterable[int]] = None,
        session: OrchestrationSession | None = None,
    ) -> AsyncIterator[OrchestrationProgress]:
        """
        Run the plan, yielding a progress snapshot after every step.

        Args:
            plan: Chunks to process (read-only for the duration of the run)
            options: Options carried to every call
            selection: Chunk indices for rewrite/expand (None = all)
            session: Session to record state in (creates one if not provided)

        Yields:
            OrchestrationProgress snapshots; the last one holds the final text
            (or the partial text if the run was cancelled)

        Raises:
            PlanningError: If the request is invalid or the session ID is
                already in use by a running session
            SelectionError: If the selection is empty or out of range
        """
        session = session or OrchestrationSession()
        indices = self.validate(plan, options, selection, session)
        steps = self._build_steps(plan, options, indices)

        texts = plan.texts
        markers: dict[int, str] = {}
        appended: list[str] = []
        high_water = -1
        total = len(steps)

        session.state = OrchestrationState.RUNNING
        session.progress = OrchestrationProgress(0, total, "")
        self._sessions[session.session_id] = session

        logger.info(
            f"Session {session.session_id[:8]}: {total} steps over {len(plan)} chunks "
            f"with {options.provider} ({', '.join(m.value for m in options.ordered_modes)})"
        )

        try:
            for position, step in enumerate(steps):
                if position > 0:
                    await self._cooldown(options, session)
                if session.cancel_requested:
                    logger.info(
                        f"Session {session.session_id[:8]} cancelled after {position} of {total} steps"
                    )
                    session.state = OrchestrationState.CANCELLED
                    return

                try:
                    if step.mode == TransformMode.EXPAND and step.index in markers:
                        # Rewrite failed; the chunk keeps its original text
                        logger.info(f"Skipping expand for failed chunk {step.index + 1}")
                        output = texts[step.index]
                    else:
                        output = await self._execute(step, texts, plan, options)
                except Exception as e:
                    reason = e.reason if isinstance(e, ChunkTransformError) else str(e)
                    logger.warning(
                        f"{step.mode.value} failed for chunk "
                        f"{'append' if step.index is None else step.index + 1}: {reason}"
                    )
                    session.failures.append(ChunkFailure(step.index, reason))
                    marker = format_chunk_error(step.index, reason)
                    if step.index is None:
                        appended.append(marker)
                    else:
                        markers[step.index] = marker
                else:
                    if step.index is None:
                        appended.append(output)
                    else:
                        texts[step.index] = output

                if step.index is not None:
                    high_water = max(high_water, step.index)
                elif high_water < len(texts) - 1:
                    # Appended sections follow the whole document
                    high_water = len(texts) - 1

                progress = OrchestrationProgress(
                    current_chunk=position + 1,
                    total_chunks=total,
                    accumulated_result=self._accumulated(
                        texts, markers, plan.separator, high_water, appended
                    ),
                    chunk_index=step.index,
                    failed_chunks=tuple(
                        f.index for f in session.failures if f.index is not None
                    ),
                )
                session.progress = progress
                yield progress

            final = OrchestrationProgress(
                current_chunk=total,
                total_chunks=total,
                accumulated_result=self._accumulated(
                    texts, markers, plan.separator, len(texts) - 1, appended
                ),
                chunk_index=session.progress.chunk_index if session.progress else None,
                failed_chunks=session.progress.failed_chunks if session.progress else (),
            )
            session.progress = final
            session.state = OrchestrationState.COMPLETED
            yield final

        except (GeneratorExit, asyncio.CancelledError):
            # Consumer stopped listening or the task was cancelled
            if session.state == OrchestrationState.RUNNING:
                session.state = OrchestrationState.CANCELLED
            raise
        except Exception:
            if session.state == OrchestrationState.RUNNING:
                session.state = OrchestrationState.FAILED
            raise
        finally:
            if self._sessions.get(session.session_id) is session:
                del self._sessions[session.session_id]

    async def run(
        self,
        plan: ChunkPlan,
        options: TransformOptions,
        on_progress: ProgressCallback | None = None,
        *,
        selection: Optional[Iterable[int]] = None,
        session: OrchestrationSession | None = None,
    ) -> str:
        """
        Run the plan and return the reassembled text.

        Args:
            plan: Chunks to process
            options: Options carried to every call
            on_progress: Optional callback(current_result, current_chunk, total_chunks)
            selection: Chunk indices for rewrite/expand (None = all)
            session: Session to record state in

        Returns:
            Final text, or the partial text accumulated before cancellation
        """
        session = session or OrchestrationSession()
        last: OrchestrationProgress | None = None

        async for progress in self.stream(plan, options, selection=selection, session=session):
            is_final = last is not None and progress.current_chunk == last.current_chunk
            last = progress
            if on_progress and not is_final:
                try:
                    on_progress(
                        progress.accumulated_result,
                        progress.current_chunk,
                        progress.total_chunks,
                    )
                except Exception:
                    logger.exception("Progress callback raised; continuing run")

        return last.accumulated_result if last else ""

    def cancel(self, session_id: str | None = None) -> bool:
        """
        Request cancellation of a running session.

        Args:
            session_id: Session to cancel; None cancels every running session

        Returns:
            True if a running session was found
        """
        if session_id is None:
            sessions = list(self._sessions.values())
        else:
            session = self._sessions.get(session_id)
            sessions = [session] if session else []

        for session in sessions:
            session.cancel()

        return bool(sessions)

    def get_session(self, session_id: str) -> OrchestrationSession | None:
        """Get a running session by ID."""
        return self._sessions.get(session_id)
