"""
Vector index collaborator interface and the in-memory backend.

The RAG core only talks to the ``VectorIndex`` protocol. The in-memory
backend keeps normalised numpy vectors and is used for development and tests;
production deployments use the Azure AI Search backend.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog

from ..models.rag import Chunk, IndexStats, ScoredMatch
from .base import Embedder, SearchOptions

logger = structlog.get_logger(__name__)


def apply_search_filters(
    matches: Sequence[ScoredMatch],
    options: Optional[SearchOptions],
    apply_threshold: bool = True,
) -> List[ScoredMatch]:
    """Drop matches the caller does not own, from other sources, or below threshold."""
    if options is None:
        return list(matches)

    filtered = list(matches)
    if options.user_id:
        filtered = [m for m in filtered if m.chunk.metadata.uploaded_by == options.user_id]
    if options.filter_by_source:
        allowed = set(options.filter_by_source)
        filtered = [m for m in filtered if m.chunk.metadata.source in allowed]
    if apply_threshold and options.threshold is not None:
        filtered = [m for m in filtered if m.score >= options.threshold]
    return filtered


class InMemoryVectorIndex:
    """Brute-force cosine similarity over chunks held in process memory."""

    def __init__(self, embedder: Embedder, dimension: int = 1536):
        self.embedder = embedder
        self.dimension = dimension
        self._chunks: Dict[str, Chunk] = {}
        self._vectors: Dict[str, np.ndarray] = {}

    async def initialize(self) -> None:
        logger.info("In-memory vector index ready", dimension=self.dimension)

    async def close(self) -> None:
        self._chunks.clear()
        self._vectors.clear()

    async def add_documents(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        embeddings = await self.embedder.embed_texts([chunk.content for chunk in chunks])
        for chunk, embedding in zip(chunks, embeddings):
            self._chunks[chunk.id] = chunk
            self._vectors[chunk.id] = self._normalise(embedding)
        logger.info("Added chunks to vector index", count=len(chunks), total=len(self._chunks))

    async def search(self, query: str, k: int = 5, options: Optional[SearchOptions] = None) -> List[ScoredMatch]:
        if not query.strip():
            # No query vector: browse stored chunks in insertion order.
            browse = [ScoredMatch(chunk=chunk, score=0.0, distance=1.0) for chunk in self._chunks.values()]
            return apply_search_filters(browse, options, apply_threshold=False)[:k]
        embedding = await self.embedder.embed_query(query)
        return await self.similarity_search(embedding, k, options)

    async def similarity_search(
        self, embedding: Sequence[float], k: int = 5, options: Optional[SearchOptions] = None
    ) -> List[ScoredMatch]:
        if not self._chunks:
            return []

        ids = list(self._vectors.keys())
        matrix = np.vstack([self._vectors[chunk_id] for chunk_id in ids])
        scores = matrix @ self._normalise(embedding)
        order = np.argsort(-scores, kind="stable")

        matches = []
        for position in order:
            score = float(scores[position])
            matches.append(ScoredMatch(chunk=self._chunks[ids[position]], score=score, distance=1.0 - score))
        return apply_search_filters(matches, options)[:k]

    async def get_stats(self) -> IndexStats:
        return IndexStats(count=len(self._chunks), dimension=self.dimension)

    @staticmethod
    def _normalise(vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=float)
        norm = np.linalg.norm(array)
        if norm == 0:
            return array
        return array / norm
