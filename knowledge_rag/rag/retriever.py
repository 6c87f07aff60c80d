"""
Document Retrieval Module

Vector retrieval with source-diverse and hybrid (vector + keyword) strategies
and optional lexical reranking.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..integrations.base import SearchOptions, VectorIndex
from ..integrations.vector_index import apply_search_filters
from ..models.rag import ChunkMetadata, ScoredMatch
from .config import RetrievalConfig
from .scoring import RelevanceScorer, TermOverlapScorer

logger = structlog.get_logger(__name__)


class RetrievalStrategy(str, Enum):
    DEFAULT = "default"
    DIVERSE = "diverse"
    HYBRID = "hybrid"


class RetrievalOptions(BaseModel):
    """Per-query retrieval options. ``None`` falls back to RetrievalConfig."""
    k: Optional[int] = Field(default=None, gt=0)
    threshold: Optional[float] = None
    filter_by_source: Optional[List[str]] = None
    user_id: Optional[str] = None
    rerank: bool = False
    include_metadata: bool = True
    strategy: RetrievalStrategy = RetrievalStrategy.DEFAULT


class DocumentRetriever:
    """
    Queries the vector index under one of several strategies.

    Index errors are not caught here; the caller decides whether to retry.
    """

    def __init__(
        self,
        index: VectorIndex,
        config: Optional[RetrievalConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
    ):
        self.index = index
        self.config = config or RetrievalConfig()
        self.scorer = scorer or TermOverlapScorer()

    async def retrieve(self, query: str, options: Optional[RetrievalOptions] = None) -> List[ScoredMatch]:
        """
        Retrieve matches for a query using the strategy named in the options.

        Args:
            query: Natural-language query
            options: Retrieval options (k, threshold, filters, strategy ...)

        Returns:
            Matches ordered by descending score, at most k of them
        """
        options = options or RetrievalOptions()

        if options.strategy == RetrievalStrategy.DIVERSE:
            matches = await self.retrieve_diverse_chunks(query, options)
        elif options.strategy == RetrievalStrategy.HYBRID:
            matches = await self.hybrid_search(query, options)
        else:
            matches = await self.retrieve_chunks(query, options)

        logger.info(
            "Retrieved chunks",
            strategy=options.strategy.value,
            count=len(matches),
            top_score=matches[0].score if matches else None,
        )
        return matches

    async def retrieve_chunks(self, query: str, options: Optional[RetrievalOptions] = None) -> List[ScoredMatch]:
        """Plain similarity retrieval: over-fetch, filter, optionally rerank, truncate."""
        options = options or RetrievalOptions()
        k = self._k(options)
        search_options = self._search_options(options)

        matches = await self.index.search(query, k * self.config.candidate_multiplier, search_options)
        # Filters are re-applied here so a backend that ignores them cannot inflate k
        matches = apply_search_filters(matches, search_options)

        if options.rerank:
            matches = self.rerank(query, matches)

        matches = matches[:k]
        if not options.include_metadata:
            matches = self._strip_metadata(matches)
        return matches

    async def retrieve_chunks_by_embedding(
        self, embedding: Sequence[float], options: Optional[RetrievalOptions] = None
    ) -> List[ScoredMatch]:
        """Similarity retrieval with a precomputed query vector."""
        options = options or RetrievalOptions()
        k = self._k(options)
        search_options = self._search_options(options)

        matches = await self.index.similarity_search(
            embedding, k * self.config.candidate_multiplier, search_options
        )
        return apply_search_filters(matches, search_options)[:k]

    async def retrieve_diverse_chunks(
        self, query: str, options: Optional[RetrievalOptions] = None
    ) -> List[ScoredMatch]:
        """
        Greedy source-diverse selection.

        Takes 3k candidates from plain retrieval and selects them in score
        order while no source exceeds ``max(1, k // 3)`` picks. The cap is only
        raised once every source is exhausted up to the current cap.
        """
        options = options or RetrievalOptions()
        k = self._k(options)
        candidates = await self.retrieve_chunks(
            query, options.model_copy(update={"k": k * self.config.diverse_multiplier})
        )

        cap = max(1, k // 3)
        selected: List[ScoredMatch] = []
        taken = set()
        per_source: Dict[str, int] = {}

        while len(selected) < k and len(taken) < len(candidates):
            for position, match in enumerate(candidates):
                if len(selected) >= k:
                    break
                if position in taken:
                    continue
                source = match.chunk.metadata.source
                if per_source.get(source, 0) < cap:
                    selected.append(match)
                    taken.add(position)
                    per_source[source] = per_source.get(source, 0) + 1
            cap += 1

        selected.sort(key=lambda m: m.score, reverse=True)
        return selected

    async def hybrid_search(self, query: str, options: Optional[RetrievalOptions] = None) -> List[ScoredMatch]:
        """
        Blend vector results with a keyword-overlap scan.

        Vector-only matches score ``0.7 * vector + 0.3 * positional bonus``;
        keyword matches add ``0.3 * keyword + 0.2 * positional bonus``.
        """
        options = options or RetrievalOptions()
        k = self._k(options)

        vector_matches = await self.retrieve_chunks(query, options.model_copy(update={"k": k * 2}))
        keyword_matches = await self._keyword_search(query, options)

        combined: Dict[str, ScoredMatch] = {}
        for position, match in enumerate(vector_matches):
            bonus = 1 - position / len(vector_matches)
            combined[match.chunk.id] = match.with_score(match.score * 0.7 + bonus * 0.3)

        for position, match in enumerate(keyword_matches):
            keyword_score = match.score * 0.3 + (1 - position / len(keyword_matches)) * 0.2
            existing = combined.get(match.chunk.id)
            if existing is not None:
                combined[match.chunk.id] = existing.with_score(existing.score + keyword_score)
            else:
                combined[match.chunk.id] = match.with_score(keyword_score)

        merged = sorted(combined.values(), key=lambda m: m.score, reverse=True)
        logger.debug(
            "Hybrid merge",
            vector_count=len(vector_matches),
            keyword_count=len(keyword_matches),
            merged_count=len(merged),
        )
        top = merged[:k]
        if not options.include_metadata:
            top = self._strip_metadata(top)
        return top

    def rerank(self, query: str, matches: Sequence[ScoredMatch]) -> List[ScoredMatch]:
        """Blend lexical relevance into the vector score and re-sort."""
        reranked = [
            match.with_score(self.scorer.score(query, match.chunk) * 0.3 + match.score * 0.7)
            for match in matches
        ]
        reranked.sort(key=lambda m: m.score, reverse=True)
        return reranked

    async def _keyword_search(self, query: str, options: RetrievalOptions) -> List[ScoredMatch]:
        # Scans a fixed pool of stored chunks rather than a real full-text index.
        pool_options = SearchOptions(user_id=options.user_id, filter_by_source=options.filter_by_source)
        pool = await self.index.search("", self.config.keyword_pool_size, pool_options)
        pool = apply_search_filters(pool, pool_options, apply_threshold=False)

        scored = [match.with_score(self.scorer.score(query, match.chunk)) for match in pool]
        scored = [match for match in scored if match.score > 0]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored

    def _k(self, options: RetrievalOptions) -> int:
        return options.k or self.config.k

    def _search_options(self, options: RetrievalOptions) -> SearchOptions:
        threshold = self.config.threshold if options.threshold is None else options.threshold
        return SearchOptions(
            user_id=options.user_id,
            filter_by_source=options.filter_by_source,
            threshold=threshold,
        )

    @staticmethod
    def _strip_metadata(matches: Sequence[ScoredMatch]) -> List[ScoredMatch]:
        stripped = []
        for match in matches:
            chunk = match.chunk.model_copy(update={"metadata": ChunkMetadata(source=match.chunk.source)})
            stripped.append(match.model_copy(update={"chunk": chunk}))
        return stripped
