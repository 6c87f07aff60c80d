"""
Document Chunking Module

Recursive character chunking with optional section awareness.
"""

import re
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..models.rag import Chunk, ChunkMetadata, SourceDocument
from .config import ChunkingConfig

logger = structlog.get_logger(__name__)

DocumentInput = Union[SourceDocument, Tuple[str, Mapping[str, Any]]]

# Markdown headings, or a capitalized line with no sentence punctuation
# (optionally ending in ":").
HEADING_PATTERN = re.compile(r"^(#{1,6}[ \t]+.+|[A-Z][^.!?\n]{0,79}:?[ \t]*)$", re.MULTILINE)


class DocumentChunker:
    """
    Splits extracted text into bounded, overlapping chunks.

    Splitting keeps separators and whitespace, so every chunk's ``start_index``
    points at its content in the document text. Plain chunks laid out at
    those offsets reproduce the text exactly.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.config.chunk_size,
            chunk_overlap=self.config.chunk_overlap,
            separators=self.config.separators,
            keep_separator=True,
            strip_whitespace=False,
            add_start_index=True,
            length_function=len,
        )

    def chunk(self, documents: Sequence[DocumentInput]) -> List[Chunk]:
        """
        Plain chunking of each document.

        Args:
            documents: SourceDocument objects or (text, metadata) pairs

        Returns:
            Chunks for all documents, in document order
        """
        chunks: List[Chunk] = []
        for document in documents:
            text, metadata = self._coerce(document)
            if not text.strip():
                logger.debug("Skipping empty document", source=metadata.get("source"))
                continue

            try:
                pieces = self._split(text)
                chunks.extend(self._build_chunks(pieces, text, metadata))
            except Exception as e:
                logger.error(
                    "Chunking failed, skipping document", source=metadata.get("source", "unknown"), error=str(e)
                )
                continue
            logger.info("Chunked document", source=metadata.get("source", "unknown"), chunks=len(pieces))
        return chunks

    def chunk_text(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> List[Chunk]:
        return self.chunk([(text, dict(metadata or {}))])

    def chunk_with_sections(self, documents: Sequence[DocumentInput]) -> List[Chunk]:
        """
        Section-aware chunking.

        Each detected heading labels the chunks cut from the text that follows
        it. A document whose section pass fails is chunked plainly instead.
        """
        chunks: List[Chunk] = []
        for document in documents:
            text, metadata = self._coerce(document)
            if not text.strip():
                continue

            try:
                pieces: List[Tuple[str, int, str]] = []
                for title, content, offset in self.locate_sections(text):
                    for piece, start in self._split(content):
                        pieces.append((piece, offset + start, title))
            except Exception as e:
                logger.warning(
                    "Section chunking failed, falling back to plain chunking",
                    source=metadata.get("source", "unknown"),
                    error=str(e),
                )
                chunks.extend(self.chunk([(text, metadata)]))
                continue

            chunks.extend(self._build_chunks(
                [(piece, start) for piece, start, _ in pieces],
                text,
                metadata,
                sections=[title for _, _, title in pieces],
            ))
            logger.info("Chunked document with sections", source=metadata.get("source", "unknown"), chunks=len(pieces))
        return chunks

    def split_into_sections(self, text: str) -> List[Tuple[str, str]]:
        """Partition text into (title, content) pairs using the heading heuristic."""
        return [(title, content) for title, content, _ in self.locate_sections(text)]

    def locate_sections(self, text: str) -> List[Tuple[str, str, int]]:
        """Like split_into_sections, plus the offset of each stripped body in ``text``."""
        matches = list(HEADING_PATTERN.finditer(text))
        if not matches:
            return [(self.config.untitled_section, text, 0)]

        sections: List[Tuple[str, str, int]] = []
        last_index = 0
        current_title = self.config.default_section

        for match in matches:
            if match.start() > last_index:
                section = self._stripped_span(text, last_index, match.start())
                if section:
                    sections.append((current_title,) + section)
            current_title = self._heading_title(match.group(0)) or current_title
            last_index = match.end()

        section = self._stripped_span(text, last_index, len(text))
        if section:
            sections.append((current_title,) + section)
        return sections

    @staticmethod
    def clean_text(text: str) -> str:
        """Collapse whitespace runs and trim."""
        return re.sub(r"\s+", " ", text).strip()

    @staticmethod
    def _stripped_span(text: str, start: int, end: int) -> Optional[Tuple[str, int]]:
        raw = text[start:end]
        content = raw.strip()
        if not content:
            return None
        return content, start + len(raw) - len(raw.lstrip())

    @staticmethod
    def _heading_title(line: str) -> str:
        title = re.sub(r"^#+\s*", "", line)
        return re.sub(r":?\s*$", "", title).strip()

    def _split(self, text: str) -> List[Tuple[str, int]]:
        documents = self.splitter.create_documents([text])
        return [(doc.page_content, doc.metadata.get("start_index", 0)) for doc in documents]

    def _build_chunks(
        self,
        pieces: List[Tuple[str, int]],
        text: str,
        metadata: Mapping[str, Any],
        sections: Optional[List[str]] = None,
    ) -> List[Chunk]:
        base: Dict[str, Any] = dict(metadata)
        base["source"] = base.get("source") or "unknown"
        total = len(pieces)

        chunks = []
        for index, (content, start) in enumerate(pieces):
            fields = dict(base)
            if sections is not None:
                fields["section"] = sections[index]
            fields.update(
                chunk_index=index,
                total_chunks=total,
                original_length=len(text),
                chunk_length=len(content),
                start_index=start,
            )
            chunks.append(Chunk(
                id=uuid.uuid4().hex,
                content=content,
                metadata=ChunkMetadata.from_mapping(fields),
            ))
        return chunks

    @staticmethod
    def _coerce(document: DocumentInput) -> Tuple[str, Dict[str, Any]]:
        if isinstance(document, SourceDocument):
            return document.content or "", dict(document.metadata)
        text, metadata = document
        return text or "", dict(metadata or {})
