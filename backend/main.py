"""
FastAPI application entry point for the document rewriter.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import get_settings
from backend.api.routes import router as api_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    settings = get_settings()
    logger.info("Starting document rewriter")
    logger.info(f"Default provider: {settings.default_provider}")
    logger.info(
        f"Chunking: single-call budget {settings.single_call_budget_tokens} tokens, "
        f"chunk budget {settings.chunk_max_tokens} tokens ({settings.token_estimator} estimator)"
    )

    configured = settings.configured_providers
    if configured:
        logger.info(f"Providers with API keys: {', '.join(configured)}")
    else:
        logger.warning("No provider API keys configured; transform calls will fail")

    yield

    # Shutdown
    logger.info("Shutting down document rewriter")


# Create FastAPI app
app = FastAPI(
    title="Document Rewriter",
    description="Chunked, resumable document rewriting over OpenAI, Anthropic and Perplexity",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router, prefix="/api")


def main():
    """Run the application with uvicorn."""
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
