# Models Module
"""
Pydantic models for the RAG core and the HTTP API.
"""

from .rag import (
    AnswerResult,
    BuiltContext,
    Chunk,
    ChunkMetadata,
    ConversationTurn,
    HealthReport,
    IndexStats,
    ScoredMatch,
    SourceDocument,
    StreamingAnswer,
    StreamMetadata,
)

__all__ = [
    "AnswerResult",
    "BuiltContext",
    "Chunk",
    "ChunkMetadata",
    "ConversationTurn",
    "HealthReport",
    "IndexStats",
    "ScoredMatch",
    "SourceDocument",
    "StreamingAnswer",
    "StreamMetadata",
]
