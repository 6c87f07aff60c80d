"""
Pytest configuration and fixtures.
"""

import pytest

from knowledge_rag.config.settings import Settings
from knowledge_rag.integrations.vector_index import InMemoryVectorIndex
from knowledge_rag.rag.exceptions import ExternalServiceError

from fakes import DIMENSION, FakeClock, FakeEmbedder, FakeLLM, StubIndex


@pytest.fixture
def settings():
    """Test settings with the in-memory backend and no rate-limit delay."""
    return Settings(
        _env_file=None,
        vector_backend="memory",
        embedding_dimensions=DIMENSION,
        min_request_interval_ms=0,
        similarity_threshold=0.0,
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def memory_index(embedder):
    return InMemoryVectorIndex(embedder, dimension=DIMENSION)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def failing_index():
    return StubIndex(error=ExternalServiceError("vector_index", "search", message="index offline"))
