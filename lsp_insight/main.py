"""
LSP Insight System - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import chat_router, sessions_router, images_router, lsp_insight_exception_handler
from .core.exceptions import LSPInsightError
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .models.phase import LspPhase

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    from .storage.session_store import init_session_store
    from .agents.facilitator import init_facilitator
    from .llm.factory import provider_from_settings

    store = init_session_store()
    logger.info("Session store initialized")

    llm_provider = provider_from_settings(settings)
    init_facilitator(store, llm_provider=llm_provider)
    if llm_provider is None:
        logger.warning("No LLM API key configured; turns will return a configuration notice")
    else:
        logger.info(f"Facilitator initialized with {llm_provider.name} ({llm_provider.model})")

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Facilitation assistant for LEGO Serious Play sessions with phase tracking",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(LSPInsightError, lsp_insight_exception_handler)

# Include routers
app.include_router(sessions_router)
app.include_router(images_router)
app.include_router(chat_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "message": "LSP Insight System - LEGO Serious Play facilitation assistant"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "llm_provider": settings.llm_provider,
        "llm_configured": bool(settings.resolved_api_key),
        "version": settings.app_version
    }


@app.get("/phases")
async def list_phases():
    """The six facilitation phases, in order."""
    return [
        {"phase": int(phase), "title": phase.title, "description": phase.description}
        for phase in LspPhase
    ]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lsp_insight.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
