"""
Document rewriting core.

Plans large documents into provider-sized chunks, runs one transform per
chunk in order, and supports partial reprocessing and refinement of the
last rewrite.
"""

from backend.rewrite.errors import (
    RewriteError,
    PlanningError,
    SelectionError,
    RefinementError,
    ChunkTransformError,
    format_chunk_error,
)
from backend.rewrite.models import (
    TransformMode,
    TransformOptions,
    TransformRequest,
    OrchestrationState,
    OrchestrationProgress,
    OrchestrationSession,
    ChunkFailure,
    RewriteHistory,
)
from backend.rewrite.chunking import Chunk, ChunkPlan, ChunkingPolicy
from backend.rewrite.dispatcher import TransformDispatcher
from backend.rewrite.orchestrator import Orchestrator
from backend.rewrite.reprocessing import (
    ChunkSelection,
    ReprocessingController,
    select_chunks_for_reprocessing,
)
from backend.rewrite.service import (
    RewriteService,
    get_service,
    plan_chunks,
    run_orchestration,
    stream_orchestration,
    cancel_orchestration,
    reprocess_selected,
    refine_last_rewrite,
)

__all__ = [
    # Errors
    "RewriteError",
    "PlanningError",
    "SelectionError",
    "RefinementError",
    "ChunkTransformError",
    "format_chunk_error",
    # Data models
    "TransformMode",
    "TransformOptions",
    "TransformRequest",
    "OrchestrationState",
    "OrchestrationProgress",
    "OrchestrationSession",
    "ChunkFailure",
    "RewriteHistory",
    "Chunk",
    "ChunkPlan",
    "ChunkingPolicy",
    # Components
    "TransformDispatcher",
    "Orchestrator",
    "ChunkSelection",
    "ReprocessingController",
    "select_chunks_for_reprocessing",
    # Service API
    "RewriteService",
    "get_service",
    "plan_chunks",
    "run_orchestration",
    "stream_orchestration",
    "cancel_orchestration",
    "reprocess_selected",
    "refine_last_rewrite",
]
