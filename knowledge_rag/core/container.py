"""
Service container.

Builds the RAG components once per application and owns their lifecycle.
Tests pass their own fakes instead of patching module globals.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ..config.settings import Settings, get_settings
from ..integrations.azure_search import AzureSearchVectorIndex
from ..integrations.base import Embedder, LanguageModel, VectorIndex
from ..integrations.openai_client import OpenAIChatClient, OpenAIEmbeddingClient
from ..integrations.vector_index import InMemoryVectorIndex
from ..rag.chunker import DocumentChunker
from ..rag.config import RAGConfig
from ..rag.context import ContextBuilder
from ..rag.ingestion import IngestionPipeline
from ..rag.loaders import LoaderRegistry
from ..rag.pipeline import RAGService
from ..rag.rate_limiter import RateLimiter
from ..rag.retriever import DocumentRetriever

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    config: RAGConfig
    embedder: Embedder
    llm: LanguageModel
    index: VectorIndex
    rag_service: RAGService
    ingestion: IngestionPipeline
    started: bool = False

    async def start(self) -> None:
        if self.started:
            return
        await self.index.initialize()
        self.started = True
        logger.info("Services started", index=type(self.index).__name__)

    async def close(self) -> None:
        await self.index.close()
        for client in (self.embedder, self.llm):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        self.started = False
        logger.info("Services closed")


def create_vector_index(settings: Settings, embedder: Embedder) -> VectorIndex:
    if settings.vector_backend == "azure":
        return AzureSearchVectorIndex(settings, embedder)
    if settings.vector_backend != "memory":
        raise ValueError(f"Unknown vector backend: {settings.vector_backend}")
    return InMemoryVectorIndex(embedder, dimension=settings.embedding_dimensions)


def build_container(
    settings: Optional[Settings] = None,
    embedder: Optional[Embedder] = None,
    llm: Optional[LanguageModel] = None,
    index: Optional[VectorIndex] = None,
    loaders: Optional[LoaderRegistry] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> ServiceContainer:
    """
    Wire every component from settings.

    Any collaborator passed in is used as-is, which is how tests swap in
    fakes for the embedding model, language model or index.
    """
    settings = settings or get_settings()
    config = RAGConfig.from_settings(settings)

    embedder = embedder or OpenAIEmbeddingClient(settings)
    llm = llm or OpenAIChatClient(settings)
    index = index or create_vector_index(settings, embedder)

    rag_service = RAGService(
        retriever=DocumentRetriever(index, config.retrieval),
        context_builder=ContextBuilder(config.context),
        llm=llm,
        rate_limiter=rate_limiter or RateLimiter(config.generation.min_request_interval),
        config=config,
    )
    ingestion = IngestionPipeline(
        chunker=DocumentChunker(config.chunking),
        index=index,
        loaders=loaders or LoaderRegistry.default(),
        batch_size=config.ingestion_batch_size,
    )
    return ServiceContainer(
        settings=settings,
        config=config,
        embedder=embedder,
        llm=llm,
        index=index,
        rag_service=rag_service,
        ingestion=ingestion,
    )
