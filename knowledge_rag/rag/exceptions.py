"""
RAG Exception Hierarchy

- RAGError: base for every error raised by the RAG core
- ValidationError: a query or its options were rejected before retrieval
- ExternalServiceError: vector index, embedding or language-model failure
- IngestionError: one ingestion source failed to load or index
- LoaderUnavailableError: the loader for a source type is not configured

An empty retrieval and a rate-limit wait are normal outcomes, not errors.
"""

from typing import Any, Dict, Optional


class RAGError(Exception):
    """
    Base exception for all RAG-related errors.

    Attributes:
        operation: The operation that failed (e.g. "search", "generate_text")
        context: Additional context about the error
        original_error: The exception that caused this error, if any
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.context:
            parts.append("Context: " + ", ".join(f"{k}={v}" for k, v in self.context.items()))
        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "operation": self.operation,
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None,
        }


class ValidationError(RAGError):
    """Empty question or malformed query options."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        super().__init__(message, operation=kwargs.pop("operation", "validate"), context=context, **kwargs)
        self.field = field


class ExternalServiceError(RAGError):
    """A call to the vector index, embedding or language-model service failed."""

    def __init__(self, service: str, operation: str, message: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["service"] = service
        super().__init__(message or f"{service} call failed", operation=operation, context=context, **kwargs)
        self.service = service


class IngestionError(RAGError):
    """A single ingestion source could not be loaded, chunked or indexed."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if source:
            context["source"] = source
        super().__init__(message, operation=kwargs.pop("operation", "ingest"), context=context, **kwargs)
        self.source = source


class LoaderUnavailableError(IngestionError):
    """No working loader is registered for the requested source type."""

    def __init__(self, source_type: str, reason: str):
        super().__init__(
            f"Loader for '{source_type}' sources is not available: {reason}",
            operation="load",
            context={"source_type": source_type},
        )
        self.source_type = source_type
