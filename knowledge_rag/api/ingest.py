"""
Ingestion and index statistics endpoints.
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.container import ServiceContainer
from ..models.api import IngestRequest, IngestResponse, StatsResponse
from ..rag.loaders import IngestionSource
from .dependencies import get_container, get_user_id

logger = structlog.get_logger(__name__)

router = APIRouter()

REQUIRED_FIELDS = {
    "file": "path",
    "directory": "path",
    "url": "url",
    "gdocs": "url",
    "notion": "page_id",
    "text": "text",
}


def validate_sources(sources: List[IngestionSource]) -> List[str]:
    """Per-source field problems, in request order."""
    errors = []
    for position, source in enumerate(sources):
        field = REQUIRED_FIELDS[source.type]
        if not getattr(source, field):
            errors.append(f"Source {position}: {field} is required for {source.type}")
    return errors


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    request: IngestRequest,
    container: ServiceContainer = Depends(get_container),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Load, chunk and index the given sources. Failed sources are reported, not raised."""
    if not request.sources:
        return JSONResponse({"error": "Sources array is required and must not be empty"}, status_code=400)

    problems = validate_sources(request.sources)
    if problems:
        return JSONResponse({"error": "Invalid sources", "details": problems}, status_code=400)

    report = await container.ingestion.ingest(
        request.sources,
        user_id=user_id,
        batch_size=request.config.batch_size,
        section_aware=request.config.enable_section_aware,
    )
    return IngestResponse.from_report(report)


@router.get("/stats", response_model=StatsResponse)
async def stats(container: ServiceContainer = Depends(get_container)):
    index_stats = await container.rag_service.stats()
    return StatsResponse(count=index_stats.count, dimension=index_stats.dimension)
