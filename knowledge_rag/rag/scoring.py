"""
Lexical relevance scorers.

The retriever only depends on ``RelevanceScorer.score(query, chunk)``, so a
better scorer can replace the overlap heuristic without touching retrieval.
"""

from typing import List, Protocol

from ..models.rag import Chunk


def query_terms(query: str) -> List[str]:
    """Lower-cased, whitespace-tokenized query terms."""
    return query.lower().split()


class RelevanceScorer(Protocol):
    def score(self, query: str, chunk: Chunk) -> float:
        ...


class TermOverlapScorer:
    """Fraction of query terms found verbatim in the chunk text."""

    def score(self, query: str, chunk: Chunk) -> float:
        terms = query_terms(query)
        if not terms:
            return 0.0
        content = chunk.content.lower()
        matched = sum(1 for term in terms if term in content)
        return matched / len(terms)


class JaccardScorer:
    """Jaccard similarity between query and chunk token sets."""

    def score(self, query: str, chunk: Chunk) -> float:
        query_set = set(query_terms(query))
        doc_set = set(chunk.content.lower().split())
        union = len(query_set | doc_set)
        if union == 0:
            return 0.0
        return len(query_set & doc_set) / union
