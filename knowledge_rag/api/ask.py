"""
Question answering endpoints.
"""

import json
from typing import AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from ..core.container import ServiceContainer
from ..models.api import AskRequest, AskResponse
from ..models.rag import StreamingAnswer
from ..rag.context import ContextStrategy
from ..rag.exceptions import RAGError, ValidationError
from ..rag.retriever import RetrievalStrategy
from .dependencies import get_container, get_user_id

logger = structlog.get_logger(__name__)

router = APIRouter()

FEATURES = {
    "streaming": True,
    "conversational": True,
    "sourceFiltering": True,
    "multipleResponseStyles": True,
    "retrievalStrategies": [strategy.value for strategy in RetrievalStrategy],
    "contextStrategies": [strategy.value for strategy in ContextStrategy],
}


@router.post("/ask", response_model=AskResponse)
async def ask(
    request: AskRequest,
    container: ServiceContainer = Depends(get_container),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Answer a question from the knowledge base.

    With ``options.stream`` the answer is streamed as plain text and the
    sources, chunk count and confidence travel in X-Sources, X-Chunks and
    X-Confidence headers.
    """
    if not request.question or not request.question.strip():
        raise ValidationError("Question is required", field="question")

    options = request.options.to_query_options(user_id=user_id)
    service = container.rag_service

    if options.stream:
        answer = await service.query_stream(request.question, options)
        return StreamingResponse(
            _stream_body(answer),
            media_type="text/plain; charset=utf-8",
            headers={
                "X-Sources": json.dumps(answer.metadata.sources),
                "X-Chunks": str(answer.metadata.chunk_count),
                "X-Confidence": str(answer.metadata.confidence),
            },
        )

    if request.conversation_history:
        result = await service.query_with_history(request.question, request.conversation_history, options)
    else:
        result = await service.query(request.question, options)

    return AskResponse(
        answer=result.answer,
        sources=result.sources,
        chunks=result.chunk_count,
        confidence=result.confidence,
    )


@router.get("/ask")
async def ask_status(container: ServiceContainer = Depends(get_container)):
    """Service health plus the supported query features."""
    report = await container.rag_service.health_check()
    body = {"status": report.status, **report.components, "features": FEATURES}
    if report.total_chunks is not None:
        body["totalChunks"] = report.total_chunks
    if report.error:
        body["error"] = "RAG service not available"
        if container.settings.debug:
            body["details"] = report.error
    return JSONResponse(body, status_code=200 if report.status == "healthy" else 503)


async def _stream_body(answer: StreamingAnswer) -> AsyncIterator[str]:
    # Headers are already sent, so a generation failure can only end the body early
    try:
        async for piece in answer:
            yield piece
    except RAGError as e:
        logger.error("Streaming answer failed", **e.to_dict())
    except Exception:
        logger.exception("Streaming answer failed")
