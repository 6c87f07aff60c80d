"""
Azure AI Search vector index backend.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import structlog
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.search.documents.aio import SearchClient
from azure.search.documents.indexes.aio import SearchIndexClient
from azure.search.documents.indexes.models import (
    HnswAlgorithmConfiguration,
    SearchableField,
    SearchField,
    SearchFieldDataType,
    SearchIndex,
    SimpleField,
    VectorSearch,
    VectorSearchProfile,
)
from azure.search.documents.models import VectorizedQuery

from ..config.settings import Settings
from ..models.rag import Chunk, ChunkMetadata, IndexStats, ScoredMatch
from ..rag.exceptions import ExternalServiceError
from .base import Embedder, SearchOptions
from .vector_index import apply_search_filters

logger = structlog.get_logger(__name__)

VECTOR_FIELD = "content_vector"
VECTOR_PROFILE = "knowledge-vector-profile"
HNSW_CONFIG = "knowledge-hnsw"
SELECT_FIELDS = ["id", "content", "metadata"]


def build_filter(options: Optional[SearchOptions]) -> Optional[str]:
    """OData filter for ownership and source membership."""
    if options is None:
        return None

    clauses = []
    if options.user_id:
        clauses.append(f"uploaded_by eq '{_escape(options.user_id)}'")
    if options.filter_by_source:
        joined = "|".join(_escape(source) for source in options.filter_by_source)
        clauses.append(f"search.in(source, '{joined}', '|')")
    return " and ".join(clauses) or None


def _escape(value: str) -> str:
    return value.replace("'", "''")


class AzureSearchVectorIndex:
    """
    Stores chunks with their embeddings in an Azure AI Search index.

    The index is created on ``initialize`` when it does not exist yet.
    """

    service_name = "vector_index"

    def __init__(self, settings: Settings, embedder: Embedder):
        self.settings = settings
        self.embedder = embedder
        self.index_name = settings.azure_search_index_name
        self.dimension = settings.embedding_dimensions

        credential = AzureKeyCredential(settings.azure_search_api_key)
        self.search_client = SearchClient(
            endpoint=settings.azure_search_service_endpoint,
            index_name=self.index_name,
            credential=credential,
        )
        self.index_client = SearchIndexClient(
            endpoint=settings.azure_search_service_endpoint,
            credential=credential,
        )

    async def initialize(self) -> None:
        try:
            await self.index_client.get_index(self.index_name)
            logger.info("Search index already exists", index=self.index_name)
        except ResourceNotFoundError:
            logger.info("Creating search index", index=self.index_name)
            try:
                await self.index_client.create_index(self._build_index_schema())
            except AzureError as e:
                raise ExternalServiceError(self.service_name, "initialize", original_error=e) from e
        except AzureError as e:
            raise ExternalServiceError(self.service_name, "initialize", original_error=e) from e

    async def close(self) -> None:
        await self.search_client.close()
        await self.index_client.close()

    async def add_documents(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return

        embeddings = await self.embedder.embed_texts([chunk.content for chunk in chunks])
        documents = [self._to_document(chunk, embedding) for chunk, embedding in zip(chunks, embeddings)]
        try:
            results = await self.search_client.upload_documents(documents=documents)
        except AzureError as e:
            logger.error("Chunk upload failed", count=len(documents), error=str(e))
            raise ExternalServiceError(self.service_name, "add_documents", original_error=e) from e

        failed = [result.key for result in results if not result.succeeded]
        if failed:
            raise ExternalServiceError(
                self.service_name,
                "add_documents",
                message=f"{len(failed)} chunks were rejected by the index",
                context={"keys": failed[:10]},
            )
        logger.info("Uploaded chunks", count=len(documents), index=self.index_name)

    async def search(self, query: str, k: int = 5, options: Optional[SearchOptions] = None) -> List[ScoredMatch]:
        if query.strip():
            embedding = await self.embedder.embed_query(query)
            return await self.similarity_search(embedding, k, options)

        # No query text: page through stored chunks without scoring
        try:
            results = await self.search_client.search(
                search_text="*",
                filter=build_filter(options),
                select=SELECT_FIELDS,
                top=k,
            )
            matches = [
                ScoredMatch(chunk=self._to_chunk(result), score=0.0, distance=1.0)
                async for result in results
            ]
        except AzureError as e:
            raise ExternalServiceError(self.service_name, "search", original_error=e) from e
        return apply_search_filters(matches, options, apply_threshold=False)[:k]

    async def similarity_search(
        self, embedding: Sequence[float], k: int = 5, options: Optional[SearchOptions] = None
    ) -> List[ScoredMatch]:
        vector_query = VectorizedQuery(vector=list(embedding), k_nearest_neighbors=k, fields=VECTOR_FIELD)
        try:
            results = await self.search_client.search(
                search_text=None,
                vector_queries=[vector_query],
                filter=build_filter(options),
                select=SELECT_FIELDS,
                top=k,
            )
            matches = []
            async for result in results:
                score = float(result.get("@search.score", 0.0))
                matches.append(ScoredMatch(chunk=self._to_chunk(result), score=score, distance=1.0 - score))
        except AzureError as e:
            logger.error("Vector search failed", index=self.index_name, error=str(e))
            raise ExternalServiceError(self.service_name, "similarity_search", original_error=e) from e
        return apply_search_filters(matches, options)[:k]

    async def get_stats(self) -> IndexStats:
        try:
            count = await self.search_client.get_document_count()
        except AzureError as e:
            raise ExternalServiceError(self.service_name, "get_stats", original_error=e) from e
        return IndexStats(count=count, dimension=self.dimension)

    def _build_index_schema(self) -> SearchIndex:
        fields = [
            SimpleField(name="id", type=SearchFieldDataType.String, key=True),
            SearchableField(name="content", type=SearchFieldDataType.String, analyzer_name="en.microsoft"),
            SearchField(
                name=VECTOR_FIELD,
                type=SearchFieldDataType.Collection(SearchFieldDataType.Single),
                searchable=True,
                vector_search_dimensions=self.dimension,
                vector_search_profile_name=VECTOR_PROFILE,
            ),
            SimpleField(name="source", type=SearchFieldDataType.String, filterable=True, facetable=True),
            SimpleField(name="section", type=SearchFieldDataType.String, filterable=True),
            SimpleField(name="uploaded_by", type=SearchFieldDataType.String, filterable=True),
            SimpleField(name="chunk_index", type=SearchFieldDataType.Int32, filterable=True),
            # Full metadata as JSON
            SimpleField(name="metadata", type=SearchFieldDataType.String),
        ]
        vector_search = VectorSearch(
            algorithms=[
                HnswAlgorithmConfiguration(
                    name=HNSW_CONFIG,
                    parameters={"m": 4, "efConstruction": 400, "efSearch": 500, "metric": "cosine"},
                )
            ],
            profiles=[VectorSearchProfile(name=VECTOR_PROFILE, algorithm_configuration_name=HNSW_CONFIG)],
        )
        return SearchIndex(name=self.index_name, fields=fields, vector_search=vector_search)

    @staticmethod
    def _to_document(chunk: Chunk, embedding: Sequence[float]) -> Dict[str, Any]:
        metadata = chunk.metadata
        return {
            "id": chunk.id,
            "content": chunk.content,
            VECTOR_FIELD: list(embedding),
            "source": metadata.source,
            "section": metadata.section,
            "uploaded_by": metadata.uploaded_by,
            "chunk_index": metadata.chunk_index,
            "metadata": json.dumps(metadata.to_flat_dict(), default=str),
        }

    @staticmethod
    def _to_chunk(result: Dict[str, Any]) -> Chunk:
        raw = result.get("metadata") or "{}"
        return Chunk(
            id=result["id"],
            content=result.get("content", ""),
            metadata=ChunkMetadata.from_mapping(json.loads(raw)),
        )
