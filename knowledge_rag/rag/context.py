"""
Context Assembly Module

Lays out retrieved matches as one bounded, attributed text block.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..models.rag import BuiltContext, ScoredMatch
from .config import ContextConfig

logger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated...]"

COMPARATIVE_TEMPLATE = """Based on the following information sources:

{{chunks}}

Sources: {{sources}}

Please compare the relevant information to answer the question."""

PROCEDURAL_TEMPLATE = """Step-by-step information from {{numChunks}} sources:

{{chunks}}

Sources: {{sources}}

Please provide a clear procedure based on this information."""


class ContextStrategy(str, Enum):
    DEFAULT = "default"
    SOURCE_GROUPED = "source-grouped"
    QUESTION_SPECIFIC = "question-specific"


class QuestionType(str, Enum):
    PROCEDURAL = "procedural"
    COMPARATIVE = "comparative"
    FACTUAL = "factual"
    GENERAL = "general"


class ContextOptions(BaseModel):
    max_length: Optional[int] = Field(default=None, gt=0)
    include_metadata: Optional[bool] = None
    separate_by_source: bool = False
    template: Optional[str] = None


def truncate_at_boundary(text: str, max_length: int) -> str:
    """
    Cut text to at most ``max_length`` characters.

    Prefers to end just after the last period or newline, provided that cut
    keeps at least 80% of ``max_length``; otherwise cuts hard. Text already
    within bounds is returned unchanged.
    """
    if len(text) <= max_length:
        return text

    head = text[:max_length]
    cut = max(head.rfind("."), head.rfind("\n")) + 1
    if cut >= max_length * 0.8:
        return head[:cut]
    return head


def classify_question(question: str) -> QuestionType:
    lowered = question.lower().strip()
    if "how to" in lowered or "steps" in lowered or "process" in lowered:
        return QuestionType.PROCEDURAL
    if re.search(r"\bvs\b", lowered) or "compared to" in lowered or "difference" in lowered:
        return QuestionType.COMPARATIVE
    if lowered.startswith(("what", "who", "when")):
        return QuestionType.FACTUAL
    return QuestionType.GENERAL


class ContextBuilder:
    """Renders matches into prompt-ready context with source attribution."""

    def __init__(self, config: Optional[ContextConfig] = None):
        self.config = config or ContextConfig()

    def build(self, matches: Sequence[ScoredMatch], options: Optional[ContextOptions] = None) -> BuiltContext:
        """
        Build a context from ordered matches.

        Args:
            matches: Matches in ranking order
            options: Layout and length options

        Returns:
            BuiltContext whose text never exceeds max_length plus the truncation marker
        """
        options = options or ContextOptions()
        if not matches:
            return BuiltContext(text="", sources=[], matches=[], total_length=0)

        max_length = options.max_length or self.config.max_length
        include_metadata = self._include_metadata(options)

        if options.template:
            text = self._render_template(matches, options.template, include_metadata)
        elif options.separate_by_source:
            text = self._render_grouped(matches, include_metadata)
        else:
            text = self._render_default(matches, include_metadata)

        if len(text) > max_length:
            logger.debug("Truncating context", length=len(text), max_length=max_length)
            text = truncate_at_boundary(text, max_length) + TRUNCATION_MARKER

        return BuiltContext(
            text=text,
            sources=self.unique_sources(matches),
            matches=list(matches),
            total_length=len(text),
        )

    def build_question_specific(
        self,
        matches: Sequence[ScoredMatch],
        question: str,
        options: Optional[ContextOptions] = None,
    ) -> BuiltContext:
        """Pick a layout from the question type, then build."""
        options = options or ContextOptions()
        question_type = classify_question(question)

        if question_type == QuestionType.COMPARATIVE:
            adjusted = options.model_copy(update={"separate_by_source": True, "template": COMPARATIVE_TEMPLATE})
        elif question_type == QuestionType.PROCEDURAL:
            adjusted = options.model_copy(update={"template": PROCEDURAL_TEMPLATE})
        elif question_type == QuestionType.FACTUAL:
            adjusted = options.model_copy(update={"separate_by_source": True, "include_metadata": True})
        else:
            adjusted = options

        logger.debug("Classified question", question_type=question_type.value)
        return self.build(matches, adjusted)

    def build_for_strategy(
        self,
        matches: Sequence[ScoredMatch],
        question: str,
        strategy: ContextStrategy = ContextStrategy.DEFAULT,
        options: Optional[ContextOptions] = None,
    ) -> BuiltContext:
        options = options or ContextOptions()
        if strategy == ContextStrategy.QUESTION_SPECIFIC:
            return self.build_question_specific(matches, question, options)
        if strategy == ContextStrategy.SOURCE_GROUPED:
            return self.build(matches, options.model_copy(update={"separate_by_source": True}))
        return self.build(matches, options)

    @staticmethod
    def classify_question(question: str) -> QuestionType:
        return classify_question(question)

    @staticmethod
    def unique_sources(matches: Sequence[ScoredMatch]) -> List[str]:
        return list(dict.fromkeys(match.chunk.metadata.source for match in matches))

    def _include_metadata(self, options: ContextOptions) -> bool:
        if options.include_metadata is None:
            return self.config.include_metadata
        return options.include_metadata

    @staticmethod
    def _render_default(matches: Sequence[ScoredMatch], include_metadata: bool) -> str:
        blocks = []
        for number, match in enumerate(matches, start=1):
            block = f"[{number}] {match.chunk.content}"
            if include_metadata:
                metadata = match.chunk.metadata
                parts = [f"Source: {metadata.source}"]
                if metadata.section:
                    parts.append(f"Section: {metadata.section}")
                if metadata.page:
                    parts.append(f"Page: {metadata.page}")
                block += f"\n({', '.join(parts)})"
            blocks.append(block)
        return "\n\n".join(blocks)

    @staticmethod
    def _render_grouped(matches: Sequence[ScoredMatch], include_metadata: bool) -> str:
        groups: Dict[str, List[ScoredMatch]] = {}
        for match in matches:
            groups.setdefault(match.chunk.metadata.source, []).append(match)

        rendered = []
        for source, group in groups.items():
            items = []
            for number, match in enumerate(group, start=1):
                item = f"{number}. {match.chunk.content}"
                if include_metadata and match.chunk.metadata.section:
                    item += f"\n   (Section: {match.chunk.metadata.section})"
                items.append(item)
            rendered.append(f"## From {source}:\n" + "\n\n".join(items))
        return "\n\n".join(rendered)

    def _render_template(self, matches: Sequence[ScoredMatch], template: str, include_metadata: bool) -> str:
        return (
            template
            .replace("{{chunks}}", self._render_default(matches, include_metadata))
            .replace("{{sources}}", ", ".join(self.unique_sources(matches)))
            .replace("{{numChunks}}", str(len(matches)))
        )
