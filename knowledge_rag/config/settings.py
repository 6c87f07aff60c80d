"""
Application settings and configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application configuration settings."""

    # Application settings
    app_name: str = "Knowledge RAG Assistant"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    environment: str = "development"
    debug: bool = False

    # FastAPI settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: List[str] = ["*"]

    # Azure OpenAI settings
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2024-02-01"
    azure_openai_deployment_name: str = "gpt-4o-mini"
    azure_openai_embedding_deployment: str = "text-embedding-3-small"

    # Fallback OpenAI settings
    openai_api_key: str = ""
    openai_chat_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"

    # Vector index settings
    vector_backend: str = "memory"  # "memory" or "azure"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 16
    embedding_batch_delay: float = 0.1

    # Azure AI Search settings
    azure_search_service_endpoint: str = ""
    azure_search_index_name: str = "knowledge-chunks"
    azure_search_api_key: str = ""

    # RAG defaults
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_k: int = 5
    similarity_threshold: float = 0.7
    context_max_length: int = 4000
    min_request_interval_ms: int = 2000
    generation_temperature: float = 0.3
    generation_max_tokens: int = 1000
    ingestion_batch_size: int = 100

    @property
    def uses_azure_openai(self) -> bool:
        """Azure OpenAI takes precedence when an endpoint is configured."""
        return bool(self.azure_openai_endpoint)

    @property
    def effective_openai_api_key(self) -> str:
        return self.azure_openai_api_key if self.uses_azure_openai else self.openai_api_key

    @property
    def effective_chat_model(self) -> str:
        return self.azure_openai_deployment_name if self.uses_azure_openai else self.openai_chat_model

    @property
    def effective_embedding_model(self) -> str:
        return self.azure_openai_embedding_deployment if self.uses_azure_openai else self.openai_embedding_model

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Returns a cached instance of the application settings."""
    return Settings()
