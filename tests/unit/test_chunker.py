"""
Unit tests for DocumentChunker.
"""

import pytest

from knowledge_rag.models.rag import SourceDocument
from knowledge_rag.rag.chunker import DocumentChunker
from knowledge_rag.rag.config import ChunkingConfig


def rebuild(chunks):
    """Lay chunks out at their start offsets; later chunks overwrite the overlap."""
    text = ""
    for chunk in sorted(chunks, key=lambda c: c.metadata.chunk_index):
        start = chunk.metadata.start_index
        text = text[:start] + chunk.content
    return text


class TestPlainChunking:
    """Test cases for plain recursive chunking."""

    @pytest.fixture
    def chunker(self):
        return DocumentChunker(ChunkingConfig(chunk_size=200, chunk_overlap=50))

    def test_short_text_yields_single_chunk(self):
        """Text shorter than the chunk size becomes exactly one chunk."""
        chunks = DocumentChunker().chunk([("A1. A2. A3.", {"source": "scenario.txt"})])

        assert len(chunks) == 1
        assert chunks[0].content == "A1. A2. A3."
        assert chunks[0].metadata.chunk_index == 0
        assert chunks[0].metadata.total_chunks == 1
        assert chunks[0].metadata.original_length == len("A1. A2. A3.")

    def test_empty_text_yields_no_chunks(self, chunker):
        assert chunker.chunk([("", {"source": "a"}), ("   \n\t", {"source": "b"})]) == []

    def test_chunks_reconstruct_text(self, chunker):
        """Chunks laid out by start index reproduce the original exactly."""
        text = " ".join(f"word{i}" for i in range(600))
        chunks = chunker.chunk([(text, {"source": "long.txt"})])

        assert len(chunks) > 1
        assert rebuild(chunks) == text

    def test_overlap_is_bounded(self, chunker):
        text = " ".join(f"token{i}" for i in range(400))
        chunks = sorted(chunker.chunk([(text, {"source": "long.txt"})]), key=lambda c: c.metadata.chunk_index)

        for previous, current in zip(chunks, chunks[1:]):
            previous_end = previous.metadata.start_index + len(previous.content)
            overlap = previous_end - current.metadata.start_index
            assert 0 <= overlap <= 50

    def test_chunk_length_never_exceeds_chunk_size(self, chunker):
        text = "\n\n".join(" ".join(f"p{p}w{w}" for w in range(60)) for p in range(10))
        chunks = chunker.chunk([(text, {"source": "paragraphs.txt"})])

        assert all(len(chunk.content) <= 200 for chunk in chunks)
        assert all(chunk.metadata.chunk_length == len(chunk.content) for chunk in chunks)

    def test_sibling_numbering(self, chunker):
        text = " ".join(f"w{i}" for i in range(300))
        chunks = chunker.chunk([(text, {"source": "a.txt"})])

        assert [c.metadata.chunk_index for c in chunks] == list(range(len(chunks)))
        assert {c.metadata.total_chunks for c in chunks} == {len(chunks)}

    def test_metadata_is_inherited(self, chunker):
        chunks = chunker.chunk_text("Some text.", {"source": "a.md", "author": "kim", "page": 3})

        metadata = chunks[0].metadata
        assert metadata.source == "a.md"
        assert metadata.page == 3
        assert metadata.extra["author"] == "kim"

    def test_missing_source_defaults_to_unknown(self, chunker):
        chunks = chunker.chunk_text("Hello world.", {})
        assert chunks[0].metadata.source == "unknown"

    def test_accepts_source_documents(self, chunker):
        document = SourceDocument(content="Hello there.", metadata={"source": "doc.txt"})
        chunks = chunker.chunk([document])
        assert chunks[0].source == "doc.txt"

    def test_chunk_ids_are_unique(self, chunker):
        text = " ".join(f"w{i}" for i in range(300))
        chunks = chunker.chunk([(text, {"source": "a"}), (text, {"source": "b"})])
        assert len({chunk.id for chunk in chunks}) == len(chunks)

    def test_failing_document_is_skipped(self, chunker, monkeypatch):
        split = chunker._split

        def flaky(text):
            if text == "bad doc":
                raise RuntimeError("splitter exploded")
            return split(text)

        monkeypatch.setattr(chunker, "_split", flaky)

        chunks = chunker.chunk([("bad doc", {"source": "bad"}), ("good doc", {"source": "good"})])

        assert [chunk.source for chunk in chunks] == ["good"]
        assert chunks[0].content == "good doc"


class TestSectionChunking:
    """Test cases for section-aware chunking."""

    @pytest.fixture
    def chunker(self):
        return DocumentChunker()

    def test_split_into_markdown_sections(self, chunker):
        text = "# Overview\nThe system answers questions.\n\n# Setup\nInstall the package first."

        assert chunker.split_into_sections(text) == [
            ("Overview", "The system answers questions."),
            ("Setup", "Install the package first."),
        ]

    def test_text_before_first_heading_is_introduction(self, chunker):
        text = "Preface text here.\n## Details\nMore text."

        sections = chunker.split_into_sections(text)

        assert sections[0] == ("Introduction", "Preface text here.")
        assert sections[1] == ("Details", "More text.")

    def test_capitalized_line_with_colon_is_heading(self, chunker):
        text = "Requirements:\nPython must be installed."

        assert chunker.split_into_sections(text) == [("Requirements", "Python must be installed.")]

    def test_no_headings_gives_single_content_section(self, chunker):
        text = "just lower case text. nothing else."
        assert chunker.split_into_sections(text) == [("Content", text)]

    def test_chunks_carry_section_labels(self, chunker):
        text = "# Overview\nThe system answers questions.\n\n# Setup\nInstall the package first."

        chunks = chunker.chunk_with_sections([(text, {"source": "guide.md"})])

        assert [c.metadata.section for c in chunks] == ["Overview", "Setup"]
        assert [c.content for c in chunks] == ["The system answers questions.", "Install the package first."]
        assert [c.metadata.chunk_index for c in chunks] == [0, 1]
        assert all(c.metadata.total_chunks == 2 for c in chunks)
        assert all(c.metadata.original_length == len(text) for c in chunks)

    def test_section_chunks_sit_at_their_start_index(self):
        chunker = DocumentChunker(ChunkingConfig(chunk_size=60, chunk_overlap=10))
        alpha = " ".join(f"alpha{i}" for i in range(30))
        beta = " ".join(f"beta{i}" for i in range(30))
        text = f"# One\n{alpha}\n\n# Two\n\n  {beta}\n"

        chunks = chunker.chunk_with_sections([(text, {"source": "guide.md"})])

        assert {c.metadata.section for c in chunks} == {"One", "Two"}
        for chunk in chunks:
            start = chunk.metadata.start_index
            assert text[start:start + len(chunk.content)] == chunk.content

    def test_falls_back_to_plain_chunking_on_failure(self, chunker, monkeypatch):
        def broken(text):
            raise RuntimeError("heading parser exploded")

        monkeypatch.setattr(chunker, "locate_sections", broken)

        chunks = chunker.chunk_with_sections([("# Title\nBody text.", {"source": "guide.md"})])

        assert len(chunks) == 1
        assert chunks[0].content == "# Title\nBody text."
        assert chunks[0].metadata.section is None

    def test_empty_document_skipped(self, chunker):
        assert chunker.chunk_with_sections([("  ", {"source": "empty.md"})]) == []


def test_clean_text_collapses_whitespace():
    assert DocumentChunker.clean_text("  a \n\n b\t c  ") == "a b c"
