"""
Test doubles for the embedding model, language model, vector index and clock.
"""

import re
import zlib
from typing import Dict, List, Optional, Sequence

import numpy as np

from knowledge_rag.integrations.base import SearchOptions
from knowledge_rag.integrations.vector_index import apply_search_filters
from knowledge_rag.models.rag import Chunk, ChunkMetadata, IndexStats, ScoredMatch

DIMENSION = 64


def make_chunk(content: str, source: str = "doc.md", chunk_id: Optional[str] = None, **metadata) -> Chunk:
    return Chunk(
        id=chunk_id or f"{source}-{zlib.crc32(content.encode())}",
        content=content,
        metadata=ChunkMetadata(source=source, **metadata),
    )


def make_match(content: str, source: str = "doc.md", score: float = 0.9, chunk_id: Optional[str] = None,
               **metadata) -> ScoredMatch:
    return ScoredMatch(chunk=make_chunk(content, source, chunk_id, **metadata), score=score, distance=1.0 - score)


class FakeEmbedder:
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls: List[List[str]] = []

    def _vector(self, text: str) -> List[float]:
        vector = np.zeros(self.dimension)
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vector.tolist()

    async def embed_text(self, text: str) -> List[float]:
        return self._vector(text)

    async def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    async def embed_query(self, text: str) -> List[float]:
        return self._vector(text)


class FakeLLM:
    """Records prompts and replays canned output."""

    def __init__(self, answer: str = "Generated answer", stream_pieces: Sequence[str] = ("Hello", " world"),
                 error: Optional[Exception] = None):
        self.answer = answer
        self.stream_pieces = list(stream_pieces)
        self.error = error
        self.prompts: List[str] = []
        self.history_calls: List[Dict] = []
        self.calls: List[str] = []

    async def generate_text(self, prompt, temperature=None, max_tokens=None) -> str:
        self.calls.append("generate_text")
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.answer

    async def generate_stream(self, prompt, temperature=None, max_tokens=None):
        self.calls.append("generate_stream")
        self.prompts.append(prompt)
        for piece in self.stream_pieces:
            yield piece
        if self.error:
            raise self.error

    async def generate_with_history(self, turns, system_prompt=None, temperature=None, max_tokens=None) -> str:
        self.calls.append("generate_with_history")
        self.history_calls.append({"turns": list(turns), "system_prompt": system_prompt})
        if self.error:
            raise self.error
        return self.answer


class StubIndex:
    """
    Vector index returning preset matches.

    ``search`` with a query returns ``matches`` with filters applied; an empty
    query returns ``pool`` (the keyword scan pool).
    """

    def __init__(self, matches: Sequence[ScoredMatch] = (), pool: Optional[Sequence[ScoredMatch]] = None,
                 error: Optional[Exception] = None):
        self.matches = list(matches)
        self.pool = list(pool) if pool is not None else list(matches)
        self.error = error
        self.search_calls: List[Dict] = []
        self.added: List[List[Chunk]] = []

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def add_documents(self, chunks):
        if self.error:
            raise self.error
        self.added.append(list(chunks))

    async def search(self, query: str, k: int = 5, options: Optional[SearchOptions] = None):
        self.search_calls.append({"query": query, "k": k, "options": options})
        if self.error:
            raise self.error
        if not query:
            return apply_search_filters(self.pool, options, apply_threshold=False)[:k]
        return apply_search_filters(self.matches, options)[:k]

    async def similarity_search(self, embedding, k: int = 5, options: Optional[SearchOptions] = None):
        return await self.search("vector", k, options)

    async def get_stats(self) -> IndexStats:
        return IndexStats(count=len(self.pool), dimension=DIMENSION)


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
