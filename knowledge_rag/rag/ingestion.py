"""
Document Ingestion Pipeline

Load -> chunk -> index, one source at a time. A failing source is recorded
in the report and the remaining sources still run.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..integrations.base import VectorIndex
from ..models.rag import Chunk, SourceDocument
from .chunker import DocumentChunker
from .loaders import IngestionSource, LoaderRegistry

logger = structlog.get_logger(__name__)


class IngestionFailure(BaseModel):
    source: str
    error: str


class IngestionReport(BaseModel):
    sources_processed: int = 0
    documents_loaded: int = 0
    chunks_created: int = 0
    chunks_indexed: int = 0
    failures: List[IngestionFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


class IngestionPipeline:
    """
    Feeds loaded documents into the vector index.

    Chunks are written in fixed-size batches, sequentially, to bound memory
    and index write bursts.
    """

    def __init__(
        self,
        chunker: DocumentChunker,
        index: VectorIndex,
        loaders: Optional[LoaderRegistry] = None,
        batch_size: int = 100,
        section_aware: bool = True,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.chunker = chunker
        self.index = index
        self.loaders = loaders or LoaderRegistry.default()
        self.batch_size = batch_size
        self.section_aware = section_aware

    async def ingest(
        self,
        sources: Sequence[IngestionSource],
        user_id: Optional[str] = None,
        batch_size: Optional[int] = None,
        section_aware: Optional[bool] = None,
    ) -> IngestionReport:
        """
        Ingest every source, collecting per-source failures.

        Args:
            sources: Sources to load
            user_id: Owner stamped on every chunk as ``uploaded_by``
            batch_size: Overrides the pipeline batch size for this run
            section_aware: Overrides section-aware chunking for this run

        Returns:
            IngestionReport with counts and failures
        """
        batch_size = batch_size or self.batch_size
        section_aware = self.section_aware if section_aware is None else section_aware
        report = IngestionReport()
        logger.info("Starting ingestion", sources=len(sources), user_id=user_id or "anonymous")

        for source in sources:
            try:
                documents = await self.loaders.load(source)
                documents = [doc for doc in documents if doc.content and doc.content.strip()]
                documents = [self._stamp(doc, user_id) for doc in documents]

                if section_aware:
                    chunks = self.chunker.chunk_with_sections(documents)
                else:
                    chunks = self.chunker.chunk(documents)

                await self._index_in_batches(chunks, batch_size)
            except Exception as e:
                logger.error("Ingestion failed for source", source=source.label, type=source.type, error=str(e))
                report.failures.append(IngestionFailure(source=source.label, error=str(e)))
                continue

            report.sources_processed += 1
            report.documents_loaded += len(documents)
            report.chunks_created += len(chunks)
            report.chunks_indexed += len(chunks)
            logger.info(
                "Ingested source",
                source=source.label,
                documents=len(documents),
                chunks=len(chunks),
            )

        logger.info(
            "Ingestion completed",
            processed=report.sources_processed,
            failed=len(report.failures),
            chunks=report.chunks_indexed,
        )
        return report

    async def ingest_text(
        self, texts: Sequence[Mapping[str, Any]], user_id: Optional[str] = None
    ) -> IngestionReport:
        """Ingest ``{"content", "source", "metadata"?}`` entries."""
        sources = [
            IngestionSource(
                type="text",
                text=entry["content"],
                metadata={**(entry.get("metadata") or {}), "source": entry["source"]},
            )
            for entry in texts
        ]
        return await self.ingest(sources, user_id=user_id)

    async def ingest_files(
        self,
        paths: Sequence[str],
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> IngestionReport:
        sources = [IngestionSource(type="file", path=path, metadata=metadata or {}) for path in paths]
        return await self.ingest(sources, user_id=user_id)

    async def ingest_directory(
        self,
        path: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> IngestionReport:
        return await self.ingest([IngestionSource(type="directory", path=path, metadata=metadata or {})], user_id)

    async def ingest_urls(
        self,
        urls: Sequence[str],
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> IngestionReport:
        sources = [IngestionSource(type="url", url=url, metadata=metadata or {}) for url in urls]
        return await self.ingest(sources, user_id=user_id)

    async def _index_in_batches(self, chunks: List[Chunk], batch_size: int) -> None:
        total_batches = (len(chunks) + batch_size - 1) // batch_size
        for start in range(0, len(chunks), batch_size):
            await self.index.add_documents(chunks[start:start + batch_size])
            logger.debug("Indexed batch", batch=start // batch_size + 1, total=total_batches)

    @staticmethod
    def _stamp(document: SourceDocument, user_id: Optional[str]) -> SourceDocument:
        metadata = dict(document.metadata)
        metadata["uploaded_at"] = datetime.now(timezone.utc).isoformat()
        if user_id:
            metadata["uploaded_by"] = user_id
        return SourceDocument(content=document.content, metadata=metadata)
