"""
Core RAG data models.

Chunks are immutable once created by the chunker. Matches, contexts and
answers are ephemeral and derived per query.
"""

from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkMetadata(BaseModel):
    """Well-known chunk metadata fields plus a free-form extension map."""

    model_config = ConfigDict(frozen=True)

    source: str
    section: Optional[str] = None
    title: Optional[str] = None
    page: Optional[int] = None
    url: Optional[str] = None
    timestamp: Optional[datetime] = None
    uploaded_by: Optional[str] = None
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    original_length: Optional[int] = None
    chunk_length: Optional[int] = None
    start_index: Optional[int] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("source")
    @classmethod
    def _source_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("source must be a non-empty string")
        return value

    @classmethod
    def known_fields(cls) -> List[str]:
        return [name for name in cls.model_fields if name != "extra"]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChunkMetadata":
        """Split an arbitrary mapping into known fields and ``extra``.

        Accepts both snake_case and the camelCase spellings used by loaders
        and stored index records (``uploadedBy``, ``chunkIndex`` ...).
        """
        aliases = {
            "uploadedBy": "uploaded_by",
            "chunkIndex": "chunk_index",
            "totalChunks": "total_chunks",
            "originalLength": "original_length",
            "chunkLength": "chunk_length",
            "startIndex": "start_index",
        }
        known = set(cls.known_fields())
        fields: Dict[str, Any] = {}
        extra: Dict[str, Any] = dict(data.get("extra") or {})
        for key, value in data.items():
            if key == "extra":
                continue
            name = aliases.get(key, key)
            if name in known:
                if value is not None:
                    fields[name] = value
            else:
                extra[key] = value
        if not fields.get("source"):
            fields["source"] = "unknown"
        return cls(**fields, extra=extra)

    def to_flat_dict(self) -> Dict[str, Any]:
        """Known fields (non-null) merged with ``extra`` into one mapping."""
        flat = dict(self.extra)
        for name in self.known_fields():
            value = getattr(self, name)
            if value is not None:
                flat[name] = value
        return flat

    def with_updates(self, **updates: Any) -> "ChunkMetadata":
        return self.model_copy(update=updates)


class Chunk(BaseModel):
    """A bounded, independently retrievable fragment of a source document."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    metadata: ChunkMetadata

    @property
    def source(self) -> str:
        return self.metadata.source


class ScoredMatch(BaseModel):
    """A chunk with its relevance score for one query."""

    chunk: Chunk
    score: float
    distance: float = 0.0

    def with_score(self, score: float) -> "ScoredMatch":
        return self.model_copy(update={"score": score})

    def __repr__(self) -> str:
        return f"ScoredMatch(id={self.chunk.id}, score={self.score:.3f}, source={self.chunk.source})"


class BuiltContext(BaseModel):
    """Bounded, attributed text blob assembled from ordered matches."""

    text: str
    sources: List[str] = Field(default_factory=list)
    matches: List[ScoredMatch] = Field(default_factory=list)
    total_length: int = 0


class AnswerResult(BaseModel):
    """Structured answer returned by the RAG service."""

    answer: str
    sources: List[str] = Field(default_factory=list)
    chunk_count: int = 0
    confidence: float = 0.0
    matches: Optional[List[ScoredMatch]] = None


class ConversationTurn(BaseModel):
    """Caller-supplied conversation history entry."""

    role: Literal["user", "assistant"]
    content: str


class SourceDocument(BaseModel):
    """Extracted text and its metadata as produced by a loader."""

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def source(self) -> str:
        return str(self.metadata.get("source") or "unknown")


class StreamMetadata(BaseModel):
    sources: List[str] = Field(default_factory=list)
    chunk_count: int = 0
    confidence: float = 0.0


class StreamingAnswer:
    """A lazy text stream paired with metadata computed before generation."""

    def __init__(self, stream: AsyncIterator[str], metadata: StreamMetadata):
        self.stream = stream
        self.metadata = metadata

    def __aiter__(self) -> AsyncIterator[str]:
        return self.stream.__aiter__()

    async def collect(self) -> str:
        """Drain the stream into one string."""
        parts = []
        async for piece in self.stream:
            parts.append(piece)
        return "".join(parts)


class HealthReport(BaseModel):
    status: Literal["healthy", "unhealthy"]
    components: Dict[str, str] = Field(default_factory=dict)
    total_chunks: Optional[int] = None
    error: Optional[str] = None


class IndexStats(BaseModel):
    count: int
    dimension: int
