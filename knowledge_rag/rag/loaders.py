"""
Document loaders and the source-type registry.

Every source type maps to a loader object. Connectors that are not
configured are registered as ``UnavailableLoader`` so a request for them
fails with a clear error instead of the loader being looked up at runtime.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol

import aiohttp
import structlog
from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field

from ..models.rag import SourceDocument
from .exceptions import IngestionError, LoaderUnavailableError

logger = structlog.get_logger(__name__)

SourceType = Literal["file", "directory", "url", "notion", "gdocs", "text"]

SUPPORTED_EXTENSIONS = (".txt", ".md")


class IngestionSource(BaseModel):
    """One thing to ingest: a file, directory, URL, raw text or connector item."""
    type: SourceType
    path: Optional[str] = None
    url: Optional[str] = None
    page_id: Optional[str] = Field(default=None, alias="pageId")
    document_id: Optional[str] = Field(default=None, alias="documentId")
    text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def label(self) -> str:
        """Human-readable identifier used in error reports."""
        return (
            self.path
            or self.url
            or self.page_id
            or self.document_id
            or self.metadata.get("source")
            or self.type
        )


class DocumentLoader(Protocol):
    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        ...


class TextLoader:
    """Wraps raw text supplied in the request."""

    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        if not source.text:
            raise IngestionError("Text content is required", source=source.label)
        metadata = dict(source.metadata)
        metadata["source"] = metadata.get("source") or "text-input"
        return [SourceDocument(content=source.text, metadata=metadata)]


class FileLoader:
    """Plain-text and markdown files, singly or from a directory tree."""

    def __init__(self, extensions=SUPPORTED_EXTENSIONS, encoding: str = "utf-8"):
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.encoding = encoding

    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        if not source.path:
            raise IngestionError(f"{source.type.capitalize()} path is required", source=source.label)

        path = Path(source.path)
        if source.type == "directory":
            return self._load_directory(path, source.metadata)
        return [self._load_file(path, source.metadata)]

    def _load_file(self, path: Path, metadata: Dict[str, Any]) -> SourceDocument:
        if path.suffix.lower() not in self.extensions:
            raise IngestionError(f"Unsupported file type: {path.suffix or path.name}", source=str(path))
        try:
            content = path.read_text(encoding=self.encoding)
        except OSError as e:
            raise IngestionError(f"Could not read file: {e}", source=str(path), original_error=e) from e

        return SourceDocument(
            content=content.strip(),
            metadata={"source": path.name, "file_path": str(path), **metadata},
        )

    def _load_directory(self, path: Path, metadata: Dict[str, Any]) -> List[SourceDocument]:
        if not path.is_dir():
            raise IngestionError("Directory not found", source=str(path))

        documents = []
        for file_path in sorted(path.rglob("*")):
            if not file_path.is_file() or file_path.suffix.lower() not in self.extensions:
                continue
            try:
                documents.append(self._load_file(file_path, metadata))
            except IngestionError as e:
                logger.warning("Skipping unreadable file", path=str(file_path), error=e.message)
        logger.info("Loaded directory", path=str(path), documents=len(documents))
        return documents


class UrlLoader:
    """Fetches a web page and keeps the visible text of its body."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        if not source.url:
            raise IngestionError("URL is required", source=source.label)

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(source.url) as response:
                    response.raise_for_status()
                    html = await response.text()
        except aiohttp.ClientError as e:
            raise IngestionError(f"Failed to fetch URL: {e}", source=source.url, original_error=e) from e

        title, text = self.extract_text(html)
        metadata: Dict[str, Any] = {"source": source.url, "url": source.url}
        if title:
            metadata["title"] = title
        metadata.update(source.metadata)
        return [SourceDocument(content=text, metadata=metadata)]

    @staticmethod
    def extract_text(html: str):
        """Return (title, body text) with scripts and styles removed."""
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else None
        root = soup.body or soup
        text = root.get_text("\n")
        lines = (line.strip() for line in text.splitlines())
        text = "\n".join(line for line in lines if line)
        return title, re.sub(r"[ \t]+", " ", text)


class UnavailableLoader:
    """Null loader for a connector that is not configured."""

    def __init__(self, source_type: str, reason: str):
        self.source_type = source_type
        self.reason = reason

    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        raise LoaderUnavailableError(self.source_type, self.reason)


class LoaderRegistry:
    """Maps each source type to the loader that handles it."""

    def __init__(self, loaders: Optional[Dict[str, DocumentLoader]] = None):
        self._loaders: Dict[str, DocumentLoader] = dict(loaders or {})

    @classmethod
    def default(cls) -> "LoaderRegistry":
        file_loader = FileLoader()
        return cls({
            "text": TextLoader(),
            "file": file_loader,
            "directory": file_loader,
            "url": UrlLoader(),
            "notion": UnavailableLoader("notion", "Notion integration is not configured"),
            "gdocs": UnavailableLoader("gdocs", "Google Docs integration is not configured"),
        })

    def register(self, source_type: str, loader: DocumentLoader) -> None:
        self._loaders[source_type] = loader

    def get(self, source_type: str) -> DocumentLoader:
        loader = self._loaders.get(source_type)
        if loader is None:
            raise IngestionError(f"Unsupported source type: {source_type}", source=source_type)
        return loader

    def is_available(self, source_type: str) -> bool:
        loader = self._loaders.get(source_type)
        return loader is not None and not isinstance(loader, UnavailableLoader)

    @property
    def source_types(self) -> List[str]:
        return sorted(self._loaders)

    async def load(self, source: IngestionSource) -> List[SourceDocument]:
        return await self.get(source.type).load(source)
