"""
Health check service endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.container import ServiceContainer
from .dependencies import get_container

router = APIRouter()


@router.get("/")
async def health_check(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """Basic liveness check."""
    settings = container.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/detailed")
async def detailed_health_check(container: ServiceContainer = Depends(get_container)):
    """Component health: vector index, retrieval and language model."""
    settings = container.settings
    report = await container.rag_service.health_check()
    body = {
        "status": report.status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": settings.app_version,
        "vector_backend": settings.vector_backend,
        "dependencies": report.components,
    }
    if report.error:
        body["error"] = report.error
    return JSONResponse(body, status_code=200 if report.status == "healthy" else 503)
