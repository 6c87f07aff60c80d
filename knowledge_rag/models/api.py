"""
HTTP request and response models.

Request bodies use camelCase on the wire; snake_case names are accepted too.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..rag.context import ContextStrategy
from ..rag.ingestion import IngestionFailure, IngestionReport
from ..rag.loaders import IngestionSource
from ..rag.pipeline import QueryOptions
from ..rag.prompts import ResponseStyle
from ..rag.retriever import RetrievalStrategy
from .rag import ConversationTurn


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AskOptions(CamelModel):
    """Query options accepted by POST /api/ask."""
    k: Optional[int] = Field(default=None, ge=1, le=50)
    include_source_citation: bool = True
    response_style: ResponseStyle = ResponseStyle.DETAILED
    filter_by_source: Optional[List[str]] = None
    stream: bool = False
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    retrieval_strategy: RetrievalStrategy = RetrievalStrategy.DEFAULT
    context_strategy: ContextStrategy = ContextStrategy.DEFAULT

    def to_query_options(self, user_id: Optional[str] = None) -> QueryOptions:
        return QueryOptions(
            **self.model_dump(),
            user_id=user_id,
            include_matches=False,
        )


class AskRequest(CamelModel):
    question: str = Field(default="", description="Question to answer from the knowledge base")
    options: AskOptions = Field(default_factory=AskOptions)
    conversation_history: List[ConversationTurn] = Field(default_factory=list)


class AskResponse(BaseModel):
    answer: str
    sources: List[str]
    chunks: int
    confidence: float


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class IngestConfig(CamelModel):
    batch_size: Optional[int] = Field(default=None, ge=1)
    enable_section_aware: bool = True


class IngestRequest(CamelModel):
    sources: List[IngestionSource]
    config: IngestConfig = Field(default_factory=IngestConfig)


class IngestResponse(BaseModel):
    success: bool
    message: str
    stats: Dict[str, Any] = Field(default_factory=dict)
    errors: List[IngestionFailure] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: IngestionReport) -> "IngestResponse":
        if report.success:
            message = f"Ingested {report.sources_processed} sources into {report.chunks_indexed} chunks"
        else:
            message = (
                f"Ingested {report.sources_processed} sources into {report.chunks_indexed} chunks, "
                f"{len(report.failures)} failed"
            )
        return cls(
            success=report.success,
            message=message,
            stats={
                "sourcesProcessed": report.sources_processed,
                "documentsLoaded": report.documents_loaded,
                "chunksCreated": report.chunks_created,
                "chunksIndexed": report.chunks_indexed,
            },
            errors=report.failures,
        )


class StatsResponse(BaseModel):
    count: int
    dimension: int
