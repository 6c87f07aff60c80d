"""
RAG (Retrieval-Augmented Generation) System

A modular RAG implementation with:
- Recursive and section-aware document chunking
- Default, source-diverse and hybrid (vector + keyword) retrieval
- Optional lexical reranking through a pluggable scorer
- Bounded context assembly with source attribution
- Rate-limited single-shot, streaming and history-aware generation
"""

from .config import RAGConfig
from .chunker import DocumentChunker
from .retriever import DocumentRetriever, RetrievalOptions, RetrievalStrategy
from .context import ContextBuilder, ContextOptions, ContextStrategy
from .prompts import PromptBuilder
from .rate_limiter import RateLimiter
from .pipeline import NO_ANSWER_MESSAGE, QueryOptions, RAGService
from .ingestion import IngestionPipeline
from .loaders import IngestionSource, LoaderRegistry

__all__ = [
    'RAGConfig',
    'DocumentChunker',
    'DocumentRetriever',
    'RetrievalOptions',
    'RetrievalStrategy',
    'ContextBuilder',
    'ContextOptions',
    'ContextStrategy',
    'PromptBuilder',
    'RateLimiter',
    'NO_ANSWER_MESSAGE',
    'QueryOptions',
    'RAGService',
    'IngestionPipeline',
    'IngestionSource',
    'LoaderRegistry',
]
