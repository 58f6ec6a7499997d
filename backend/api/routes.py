"""
API route handlers for the document rewriter.
"""

import json
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from backend.config import get_settings
from backend.api.models import (
    PlanRequest,
    PlanResponse,
    ChunkInfo,
    ProcessRequest,
    ProcessResponse,
    FailedChunk,
    CancelResponse,
    ReprocessRequest,
    RefineRequest,
    RefineResponse,
    HistoryModel,
    HealthResponse,
    ErrorResponse,
)
from backend.rewrite.chunking.models import ChunkPlan
from backend.rewrite.errors import ChunkTransformError, PlanningError, RewriteError
from backend.rewrite.models import OrchestrationSession, RewriteHistory, TransformOptions
from backend.rewrite.service import get_service

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


def _build_plan(request: ProcessRequest) -> ChunkPlan:
    """Use the client's chunks when given, otherwise plan the document here."""
    if request.chunks:
        return ChunkPlan.from_texts(request.chunks)
    if request.document is None:
        raise PlanningError("Send either a document or the chunks of a previous plan.")
    return get_service().plan(request.document, request.budget)


def _process_response(session: OrchestrationSession, result: str) -> ProcessResponse:
    return ProcessResponse(
        session_id=session.session_id,
        state=session.state.value,
        result=result,
        total_chunks=session.progress.total_chunks if session.progress else 0,
        failed_chunks=[FailedChunk(index=f.index, reason=f.reason) for f in session.failures],
    )


@router.post("/plan", response_model=PlanResponse, responses=ERROR_RESPONSES)
async def plan_document(request: PlanRequest):
    """
    Plan how a document will be processed.

    Returns the chunk list with token estimates. More than one chunk means
    the client should let the user pick which chunks to process.
    """
    try:
        plan = get_service().plan(request.document, request.budget)

        return PlanResponse(
            chunks=[ChunkInfo(**chunk.to_dict()) for chunk in plan],
            total_chunks=len(plan),
            estimated_tokens=plan.estimated_tokens,
            chunk_budget=plan.chunk_budget,
            requires_selection=plan.requires_selection,
        )

    except RewriteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error in plan endpoint")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/process", response_model=ProcessResponse, responses=ERROR_RESPONSES)
async def process_document(request: ProcessRequest):
    """
    Transform a document chunk by chunk.

    With stream=true the response is newline-delimited JSON: one progress
    snapshot per step, then a final line with the session state.
    """
    try:
        service = get_service()
        plan = _build_plan(request)
        options = request.options.to_options()
        session = service.create_session(request.session_id)

        # Reject bad requests before the stream starts
        service.orchestrator.validate(plan, options, request.selection, session)

        if request.stream:
            async def generate():
                try:
                    async for progress in service.stream(
                        plan, options, request.selection, session
                    ):
                        line = {"session_id": session.session_id, **progress.to_dict()}
                        yield json.dumps(line) + "\n"
                except Exception as e:
                    logger.exception(f"Stream for session {session.session_id[:8]} failed")
                    yield json.dumps({"session_id": session.session_id, "error": str(e)}) + "\n"

                yield json.dumps({
                    "session_id": session.session_id,
                    "state": session.state.value,
                    "failed_chunks": [
                        {"index": f.index, "reason": f.reason} for f in session.failures
                    ],
                }) + "\n"

            return StreamingResponse(
                generate(),
                media_type="application/x-ndjson",
                headers={"X-Session-Id": session.session_id},
            )

        result = ""
        async for progress in service.stream(plan, options, request.selection, session):
            result = progress.accumulated_result

        return _process_response(session, result)

    except RewriteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error in process endpoint")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/process/{session_id}/cancel", response_model=CancelResponse)
async def cancel_processing(session_id: str):
    """Stop a running session after the chunk in flight finishes."""
    cancelled = get_service().cancel(session_id)
    return CancelResponse(session_id=session_id, cancelled=cancelled)


@router.post("/reprocess", response_model=ProcessResponse, responses=ERROR_RESPONSES)
async def reprocess_chunks(request: ReprocessRequest):
    """
    Rewrite selected chunks of an existing plan.

    Chunks outside the selection are returned unchanged.
    """
    try:
        service = get_service()
        plan = ChunkPlan.from_texts(request.chunks)
        options = request.options.to_options() if request.options else None
        session = service.create_session()

        result = await service.reprocess(
            plan, request.indices, request.instructions, options, session=session
        )

        return _process_response(session, result)

    except RewriteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error in reprocess endpoint")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/refine", response_model=RefineResponse, responses=ERROR_RESPONSES)
async def refine_rewrite(request: RefineRequest):
    """
    Rewrite the rewrite.

    Sends the latest result back to the provider along with the original
    text, the previous instructions and the refinement request.
    """
    try:
        service = get_service()
        history = None
        if request.history:
            history = RewriteHistory(**request.history.model_dump())

        options: TransformOptions | None = None
        if request.options:
            options = request.options.to_options()

        result = await service.refine(request.instructions, history, options)

        return RefineResponse(
            result=result,
            history=HistoryModel(**service.last_history.to_dict()),
        )

    except ChunkTransformError as e:
        logger.warning(f"Refinement failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except RewriteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error in refine endpoint")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns service status and which providers have API keys configured.
    """
    settings = get_settings()
    providers = settings.configured_providers
    return HealthResponse(
        status="healthy" if providers else "degraded",
        version=API_VERSION,
        default_provider=settings.default_provider,
        configured_providers=providers,
    )
