"""
RAG Configuration Management

Centralized tuning for all RAG components.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..config.settings import Settings


@dataclass
class ChunkingConfig:
    """Document chunking configuration"""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    separators: List[str] = field(default_factory=lambda: ["\n\n", "\n", " ", ""])
    default_section: str = "Introduction"
    untitled_section: str = "Content"


@dataclass
class RetrievalConfig:
    """Retrieval configuration"""
    k: int = 5
    threshold: float = 0.7
    candidate_multiplier: int = 2
    diverse_multiplier: int = 3
    keyword_pool_size: int = 100  # approximates a full-text index


@dataclass
class ContextConfig:
    """Context assembly configuration"""
    max_length: int = 4000
    include_metadata: bool = True


@dataclass
class GenerationConfig:
    """Language model call configuration"""
    temperature: float = 0.3
    max_tokens: int = 1000
    min_request_interval: float = 2.0  # seconds between model calls, process-wide
    max_history_length: int = 5


@dataclass
class RAGConfig:
    """Main RAG system configuration"""
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    ingestion_batch_size: int = 100

    def validate(self) -> bool:
        """Validate configuration"""
        if self.chunking.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")

        if self.chunking.chunk_size <= self.chunking.chunk_overlap:
            raise ValueError("Chunk size must be larger than overlap size")

        if self.retrieval.k <= 0:
            raise ValueError("k must be positive")

        if self.context.max_length <= 0:
            raise ValueError("Context max length must be positive")

        if self.generation.min_request_interval < 0:
            raise ValueError("Minimum request interval cannot be negative")

        if self.ingestion_batch_size <= 0:
            raise ValueError("Ingestion batch size must be positive")

        return True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'RAGConfig':
        """Create configuration from application settings"""
        settings = settings or Settings()
        config = cls(
            chunking=ChunkingConfig(
                chunk_size=settings.chunk_size,
                chunk_overlap=settings.chunk_overlap,
            ),
            retrieval=RetrievalConfig(
                k=settings.retrieval_k,
                threshold=settings.similarity_threshold,
            ),
            context=ContextConfig(max_length=settings.context_max_length),
            generation=GenerationConfig(
                temperature=settings.generation_temperature,
                max_tokens=settings.generation_max_tokens,
                min_request_interval=settings.min_request_interval_ms / 1000.0,
            ),
            ingestion_batch_size=settings.ingestion_batch_size,
        )
        config.validate()
        return config
