"""
Pydantic models for API request/response schemas.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

from backend.config import get_settings
from backend.rewrite.models import TransformMode, TransformOptions


# === Request Models ===

class TransformOptionsModel(BaseModel):
    """Options carried to every provider call in a run."""
    instructions: str = Field(..., min_length=1, max_length=10_000, description="How to transform the text")
    provider: Optional[Literal["openai", "anthropic", "perplexity"]] = Field(
        None, description="LLM provider (default from settings)"
    )
    content_source: str = Field("", description="Reference material to draw content from")
    use_content_source: bool = Field(False, description="Include the content source in prompts")
    style_source: str = Field("", description="Writing sample whose style should be emulated")
    use_style_source: bool = Field(False, description="Include the style source in prompts")
    modes: list[TransformMode] = Field(
        default_factory=lambda: [TransformMode.REWRITE],
        description="Processing modes; applied as rewrite, then expand, then append",
    )
    append_count: int = Field(0, ge=0, le=20, description="New sections to add in append mode")

    def to_options(self) -> TransformOptions:
        return TransformOptions(
            instructions=self.instructions,
            provider=self.provider or get_settings().default_provider,
            content_source=self.content_source,
            use_content_source=self.use_content_source,
            style_source=self.style_source,
            use_style_source=self.use_style_source,
            modes=tuple(self.modes),
            append_count=self.append_count,
        )


class PlanRequest(BaseModel):
    """Request body for plan endpoint."""
    document: str = Field(..., description="Full document text")
    budget: Optional[int] = Field(None, ge=1, description="Single-call token budget override")


class ProcessRequest(BaseModel):
    """Request body for process endpoint."""
    document: Optional[str] = Field(None, description="Document to plan server side")
    chunks: Optional[list[str]] = Field(None, description="Chunks from a previous plan, in order")
    budget: Optional[int] = Field(None, ge=1, description="Single-call token budget override")
    options: TransformOptionsModel
    selection: Optional[list[int]] = Field(None, description="Chunk indices to process (default: all)")
    stream: bool = Field(False, description="Stream progress as newline-delimited JSON")
    session_id: Optional[str] = Field(None, description="Client-chosen session ID for cancellation")


class ReprocessRequest(BaseModel):
    """Request body for reprocess endpoint."""
    chunks: list[str] = Field(..., min_length=1, description="Chunks of the current plan, in order")
    indices: list[int] = Field(..., description="Chunk indices to rewrite")
    instructions: str = Field(..., min_length=1, description="Instructions for this pass")
    options: Optional[TransformOptionsModel] = None


class HistoryModel(BaseModel):
    """The rewrite a refinement starts from."""
    original_text: str
    previous_instructions: str
    current_rewrite: str
    pending_refinement: str = ""


class RefineRequest(BaseModel):
    """Request body for refine endpoint."""
    instructions: str = Field(..., description="What to change about the last rewrite")
    history: Optional[HistoryModel] = Field(None, description="Defaults to the server's last rewrite")
    options: Optional[TransformOptionsModel] = None


# === Response Models ===

class ChunkInfo(BaseModel):
    """A planned chunk."""
    index: int
    text: str
    token_estimate: int


class PlanResponse(BaseModel):
    """Response body for plan endpoint."""
    chunks: list[ChunkInfo]
    total_chunks: int
    estimated_tokens: int
    chunk_budget: int
    requires_selection: bool


class FailedChunk(BaseModel):
    """A chunk whose transform failed; its original text was kept."""
    index: Optional[int]  # None for the append step
    reason: str


class ProcessResponse(BaseModel):
    """Response body for process and reprocess endpoints."""
    session_id: str
    state: str
    result: str
    total_chunks: int
    failed_chunks: list[FailedChunk] = []


class CancelResponse(BaseModel):
    """Response body for cancel endpoint."""
    session_id: str
    cancelled: bool


class RefineResponse(BaseModel):
    """Response body for refine endpoint."""
    result: str
    history: HistoryModel


class HealthResponse(BaseModel):
    """Response body for health endpoint."""
    status: str
    version: str
    default_provider: str
    configured_providers: list[str]


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
