"""
Unit tests for data models, configuration and the error hierarchy.
"""

import pydantic
import pytest

from knowledge_rag.config.settings import Settings
from knowledge_rag.models.api import AskRequest, IngestResponse
from knowledge_rag.models.rag import ChunkMetadata
from knowledge_rag.rag.config import ChunkingConfig, RAGConfig, RetrievalConfig
from knowledge_rag.rag.context import ContextStrategy
from knowledge_rag.rag.exceptions import ExternalServiceError, RAGError, ValidationError
from knowledge_rag.rag.ingestion import IngestionFailure, IngestionReport
from knowledge_rag.rag.retriever import RetrievalStrategy


class TestChunkMetadata:
    """Test cases for the chunk metadata record."""

    def test_from_mapping_splits_known_and_extra(self):
        metadata = ChunkMetadata.from_mapping({
            "source": "a.md",
            "uploadedBy": "u1",
            "chunkIndex": 3,
            "author": "kim",
            "page": None,
        })

        assert metadata.uploaded_by == "u1"
        assert metadata.chunk_index == 3
        assert metadata.page is None
        assert metadata.extra == {"author": "kim"}

    def test_from_mapping_defaults_source(self):
        assert ChunkMetadata.from_mapping({"source": ""}).source == "unknown"
        assert ChunkMetadata.from_mapping({}).source == "unknown"

    def test_source_must_not_be_empty(self):
        with pytest.raises(pydantic.ValidationError):
            ChunkMetadata(source="  ")

    def test_is_immutable(self):
        metadata = ChunkMetadata(source="a.md")

        with pytest.raises(pydantic.ValidationError):
            metadata.source = "b.md"

    def test_flat_dict_round_trip(self):
        metadata = ChunkMetadata(source="a.md", section="Intro", extra={"team": "docs"})

        flat = metadata.to_flat_dict()

        assert flat == {"source": "a.md", "section": "Intro", "team": "docs"}
        assert ChunkMetadata.from_mapping(flat) == metadata

    def test_with_updates_returns_copy(self):
        metadata = ChunkMetadata(source="a.md")

        updated = metadata.with_updates(section="Usage")

        assert updated.section == "Usage"
        assert metadata.section is None


class TestRAGConfig:
    """Test cases for configuration validation."""

    def test_defaults_are_valid(self):
        assert RAGConfig().validate()

    @pytest.mark.parametrize("config", [
        RAGConfig(chunking=ChunkingConfig(chunk_size=0)),
        RAGConfig(chunking=ChunkingConfig(chunk_size=100, chunk_overlap=100)),
        RAGConfig(retrieval=RetrievalConfig(k=0)),
        RAGConfig(ingestion_batch_size=0),
    ])
    def test_invalid_configs(self, config):
        with pytest.raises(ValueError):
            config.validate()

    def test_from_settings(self):
        settings = Settings(_env_file=None, chunk_size=500, chunk_overlap=50, retrieval_k=8,
                            min_request_interval_ms=1500, context_max_length=2000)

        config = RAGConfig.from_settings(settings)

        assert config.chunking.chunk_size == 500
        assert config.retrieval.k == 8
        assert config.context.max_length == 2000
        assert config.generation.min_request_interval == 1.5

    def test_from_settings_rejects_bad_overlap(self):
        with pytest.raises(ValueError):
            RAGConfig.from_settings(Settings(_env_file=None, chunk_size=100, chunk_overlap=200))


class TestErrors:
    """Test cases for the error hierarchy."""

    def test_external_service_error(self):
        cause = TimeoutError("took too long")
        error = ExternalServiceError("language_model", "generate_text", original_error=cause)

        assert isinstance(error, RAGError)
        assert error.to_dict() == {
            "error_type": "ExternalServiceError",
            "message": "language_model call failed",
            "operation": "generate_text",
            "context": {"service": "language_model"},
            "original_error": "took too long",
        }
        assert "Caused by: TimeoutError: took too long" in str(error)

    def test_validation_error_field(self):
        error = ValidationError("Question is required", field="question")

        assert error.field == "question"
        assert error.context == {"field": "question"}
        assert error.operation == "validate"


class TestApiModels:
    """Test cases for the HTTP request and response models."""

    def test_ask_request_accepts_camel_case(self):
        request = AskRequest.model_validate({
            "question": "What?",
            "options": {
                "includeSourceCitation": False,
                "filterBySource": ["a.md"],
                "retrievalStrategy": "hybrid",
                "contextStrategy": "source-grouped",
            },
            "conversationHistory": [{"role": "user", "content": "hi"}],
        })

        options = request.options.to_query_options(user_id="u1")

        assert options.include_source_citation is False
        assert options.filter_by_source == ["a.md"]
        assert options.retrieval_strategy == RetrievalStrategy.HYBRID
        assert options.context_strategy == ContextStrategy.SOURCE_GROUPED
        assert options.user_id == "u1"
        assert options.include_matches is False
        assert request.conversation_history[0].content == "hi"

    def test_k_is_bounded(self):
        with pytest.raises(pydantic.ValidationError):
            AskRequest.model_validate({"question": "q", "options": {"k": 51}})

    def test_ingest_response_from_report(self):
        report = IngestionReport(
            sources_processed=2,
            documents_loaded=3,
            chunks_created=7,
            chunks_indexed=7,
            failures=[IngestionFailure(source="page-1", error="not configured")],
        )

        response = IngestResponse.from_report(report)

        assert response.success is False
        assert response.stats == {
            "sourcesProcessed": 2,
            "documentsLoaded": 3,
            "chunksCreated": 7,
            "chunksIndexed": 7,
        }
        assert response.message == "Ingested 2 sources into 7 chunks, 1 failed"
        assert response.errors[0].source == "page-1"
