"""
Interfaces of the external collaborators consumed by the RAG core.
"""

from typing import AsyncIterator, Dict, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel

from ..models.rag import Chunk, ConversationTurn, IndexStats, ScoredMatch

Turn = Union[ConversationTurn, Dict[str, str]]


class SearchOptions(BaseModel):
    """Ownership, source and score filters applied to index results."""
    user_id: Optional[str] = None
    filter_by_source: Optional[List[str]] = None
    threshold: Optional[float] = None


class Embedder(Protocol):
    async def embed_text(self, text: str) -> List[float]:
        ...

    async def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        ...

    async def embed_query(self, text: str) -> List[float]:
        ...


class VectorIndex(Protocol):
    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def add_documents(self, chunks: Sequence[Chunk]) -> None:
        ...

    async def search(self, query: str, k: int = 5, options: Optional[SearchOptions] = None) -> List[ScoredMatch]:
        ...

    async def similarity_search(
        self, embedding: Sequence[float], k: int = 5, options: Optional[SearchOptions] = None
    ) -> List[ScoredMatch]:
        ...

    async def get_stats(self) -> IndexStats:
        ...


class LanguageModel(Protocol):
    async def generate_text(
        self, prompt: str, temperature: Optional[float] = None, max_tokens: Optional[int] = None
    ) -> str:
        ...

    def generate_stream(
        self, prompt: str, temperature: Optional[float] = None, max_tokens: Optional[int] = None
    ) -> AsyncIterator[str]:
        ...

    async def generate_with_history(
        self,
        turns: Sequence[Turn],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...
