"""
Core FastAPI application factory.
"""

import logging
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..api.ask import router as ask_router
from ..api.health import router as health_router
from ..api.ingest import router as ingest_router
from ..config.settings import get_settings
from ..rag.exceptions import RAGError, ValidationError
from .container import ServiceContainer, build_container


def configure_logging(log_level: str = "INFO"):
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = container.settings if container else get_settings()

    # Configure logging
    configure_logging(settings.log_level)
    logger = structlog.get_logger(__name__)

    container = container or build_container(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Question answering over an ingested knowledge base",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.container = container

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Sources", "X-Chunks", "X-Confidence"],
    )

    @app.on_event("startup")
    async def startup_event():
        """Initialize the vector index."""
        try:
            await container.start()
        except RAGError as e:
            # Keep serving so /health/detailed can report the failure
            logger.error("Failed to initialize services", **e.to_dict())

    @app.on_event("shutdown")
    async def shutdown_event():
        await container.close()

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse({"error": exc.message}, status_code=400)

    @app.exception_handler(RAGError)
    async def rag_error_handler(request: Request, exc: RAGError):
        logger.error("Request failed", path=request.url.path, **exc.to_dict())
        body = {"error": "Failed to process query"}
        if settings.debug:
            body["details"] = str(exc)
        return JSONResponse(body, status_code=500)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        body = {"error": "Internal server error"}
        if settings.debug:
            body["details"] = str(exc)
        return JSONResponse(body, status_code=500)

    # Include routers
    app.include_router(health_router, prefix="/health", tags=["health"])
    app.include_router(ask_router, prefix="/api", tags=["ask"])
    app.include_router(ingest_router, prefix="/api", tags=["ingest"])

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "ask": "/api/ask",
                "ingest": "/api/ingest",
                "stats": "/api/stats",
                "detailed_health": "/health/detailed",
            }
        }

    return app


# Create app instance for uvicorn
app = create_app()
