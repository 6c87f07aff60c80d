"""
Unit tests for ContextBuilder.
"""

import pytest

from knowledge_rag.rag.config import ContextConfig
from knowledge_rag.rag.context import (
    TRUNCATION_MARKER,
    ContextBuilder,
    ContextOptions,
    ContextStrategy,
    QuestionType,
    truncate_at_boundary,
)

from fakes import make_match


@pytest.fixture
def builder():
    return ContextBuilder()


@pytest.fixture
def matches():
    return [
        make_match("First fact.", source="a.md", section="Intro", page=2),
        make_match("Second fact.", source="b.md"),
        make_match("Third fact.", source="a.md", section="Usage"),
    ]


class TestLayouts:
    """Test cases for the context layouts."""

    def test_empty_matches_give_empty_context(self, builder):
        context = builder.build([])

        assert context.text == ""
        assert context.sources == []
        assert context.total_length == 0

    def test_default_layout_with_metadata(self, builder, matches):
        context = builder.build(matches[:2])

        assert context.text == (
            "[1] First fact.\n(Source: a.md, Section: Intro, Page: 2)\n\n"
            "[2] Second fact.\n(Source: b.md)"
        )
        assert context.total_length == len(context.text)

    def test_default_layout_without_metadata(self, builder, matches):
        context = builder.build(matches[:2], ContextOptions(include_metadata=False))

        assert context.text == "[1] First fact.\n\n[2] Second fact."

    def test_metadata_default_comes_from_config(self, matches):
        builder = ContextBuilder(ContextConfig(include_metadata=False))

        assert "(Source:" not in builder.build(matches).text

    def test_grouped_layout(self, builder, matches):
        context = builder.build(matches, ContextOptions(separate_by_source=True))

        assert context.text == (
            "## From a.md:\n"
            "1. First fact.\n   (Section: Intro)\n\n"
            "2. Third fact.\n   (Section: Usage)\n\n"
            "## From b.md:\n"
            "1. Second fact."
        )

    def test_template_placeholders(self, builder, matches):
        options = ContextOptions(template="{{numChunks}} chunks from {{sources}}:\n{{chunks}}",
                                 include_metadata=False)

        context = builder.build(matches, options)

        assert context.text.startswith("3 chunks from a.md, b.md:\n[1] First fact.")

    def test_sources_unique_in_first_appearance_order(self, builder, matches):
        context = builder.build(matches)

        assert context.sources == ["a.md", "b.md"]
        assert context.matches == matches

    def test_source_grouped_strategy(self, builder, matches):
        context = builder.build_for_strategy(matches, "anything", ContextStrategy.SOURCE_GROUPED)

        assert context.text.startswith("## From a.md:")


class TestTruncation:
    """Test cases for the length bound."""

    def test_cuts_after_last_sentence_boundary(self, builder):
        content = "a" * 3195 + "." + "b" * 1800
        rendered = "[1] " + content

        context = builder.build([make_match(content)], ContextOptions(include_metadata=False))

        assert len(rendered) == 5000
        assert context.text == rendered[:3200] + TRUNCATION_MARKER

    def test_hard_cut_without_late_boundary(self, builder):
        content = "a" * 4996
        rendered = "[1] " + content

        context = builder.build([make_match(content)], ContextOptions(include_metadata=False))

        assert context.text == rendered[:4000] + TRUNCATION_MARKER

    @pytest.mark.parametrize("length", [10, 3999, 4000, 4001, 7000])
    def test_length_bound(self, builder, length):
        context = builder.build([make_match("word. " * (length // 6 + 1))])

        assert len(context.text) <= 4000 + len(TRUNCATION_MARKER)

    def test_custom_max_length(self, builder):
        context = builder.build([make_match("x" * 500)], ContextOptions(max_length=100))

        assert context.text.endswith(TRUNCATION_MARKER)
        assert len(context.text) == 100 + len(TRUNCATION_MARKER)

    def test_truncate_keeps_short_text(self):
        assert truncate_at_boundary("short", 100) == "short"

    def test_truncate_at_newline(self):
        text = "x" * 90 + "\n" + "y" * 50

        assert truncate_at_boundary(text, 100) == "x" * 90 + "\n"


class TestQuestionSpecific:
    """Test cases for question classification and layout choice."""

    @pytest.mark.parametrize("question,expected", [
        ("How to install the package?", QuestionType.PROCEDURAL),
        ("What are the steps for deployment", QuestionType.PROCEDURAL),
        ("Python vs Java", QuestionType.COMPARATIVE),
        ("What is the difference between A and B?", QuestionType.COMPARATIVE),
        ("Redis compared to Memcached", QuestionType.COMPARATIVE),
        ("What is RAG?", QuestionType.FACTUAL),
        ("When was it released?", QuestionType.FACTUAL),
        ("Explain embeddings", QuestionType.GENERAL),
        ("Describe the canvas api", QuestionType.GENERAL),
    ])
    def test_classify_question(self, question, expected):
        assert ContextBuilder.classify_question(question) == expected

    def test_procedural_uses_step_template(self, builder, matches):
        context = builder.build_question_specific(matches, "How to configure logging?")

        assert context.text.startswith("Step-by-step information from 3 sources:")

    def test_comparative_uses_compare_template(self, builder, matches):
        context = builder.build_question_specific(matches, "a vs b")

        assert context.text.startswith("Based on the following information sources:")
        assert "Sources: a.md, b.md" in context.text

    def test_factual_groups_by_source(self, builder, matches):
        context = builder.build_question_specific(matches, "What is the first fact?")

        assert context.text.startswith("## From a.md:")
        assert "(Section: Intro)" in context.text

    def test_general_uses_default_layout(self, builder, matches):
        context = builder.build_for_strategy(matches, "Tell me more", ContextStrategy.QUESTION_SPECIFIC)

        assert context.text.startswith("[1] First fact.")
