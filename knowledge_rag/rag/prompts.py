"""
Prompt Templates

Pure templating: every builder maps its inputs to prompt text with no I/O.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from ..integrations.base import Turn
from ..models.rag import BuiltContext, ConversationTurn
from .context import TRUNCATION_MARKER, truncate_at_boundary


class ResponseStyle(str, Enum):
    CONCISE = "concise"
    DETAILED = "detailed"
    CONVERSATIONAL = "conversational"


class SummaryStyle(str, Enum):
    BULLET_POINTS = "bullet-points"
    PARAGRAPH = "paragraph"
    KEY_POINTS = "key-points"


class ConversationalPrompt(BaseModel):
    """System and user parts kept apart for chat-style model APIs."""
    system_prompt: str
    user_prompt: str
    history: str


class PromptTemplate(BaseModel):
    user: str
    system: Optional[str] = None
    variables: Dict[str, str] = {}


STYLE_INSTRUCTIONS = {
    ResponseStyle.CONCISE: "Provide concise, direct answers. ",
    ResponseStyle.DETAILED: "Provide comprehensive, well-structured answers with relevant details. ",
    ResponseStyle.CONVERSATIONAL: "Respond in a conversational, friendly tone while being informative. ",
}

SUMMARY_INSTRUCTIONS = {
    SummaryStyle.BULLET_POINTS: " Use bullet points to organize the key information.",
    SummaryStyle.KEY_POINTS: " Focus on the main key points and conclusions.",
    SummaryStyle.PARAGRAPH: " Write in clear, cohesive paragraphs.",
}

ANSWER_GUIDELINES = """IMPORTANT GUIDELINES:
- Only use information provided in the context below
- If the context doesn't contain enough information to answer the question, say so clearly
- Don't make up or hallucinate information not present in the context
- If multiple sources provide conflicting information, acknowledge this
- Structure your response clearly with appropriate formatting"""


class PromptBuilder:
    """Builds the text sent to the language model."""

    @staticmethod
    def build_answer_prompt(
        question: str,
        context: BuiltContext,
        include_source_citation: bool = True,
        response_style: ResponseStyle = ResponseStyle.DETAILED,
        language: str = "English",
    ) -> str:
        """
        Single-shot answer prompt: framing, style, citation rule, guardrails,
        then the context and the question.
        """
        instructions = "You are a helpful AI assistant that answers questions based on provided context. "
        instructions += STYLE_INSTRUCTIONS[ResponseStyle(response_style)]
        if include_source_citation:
            instructions += "Always cite your sources using the format [Source: name] when referencing information. "
        instructions += f"Respond in {language}.\n\n{ANSWER_GUIDELINES}"

        user_prompt = (
            f"Context Information:\n{context.text}\n\n"
            f"Question: {question}\n\n"
            "Please provide a comprehensive answer based on the context above."
        )
        return f"{instructions}\n\n{user_prompt}"

    @staticmethod
    def build_conversational_prompt(
        question: str,
        context: BuiltContext,
        history: Optional[Sequence[Turn]] = None,
        include_source_citation: bool = True,
        max_history_length: int = 5,
    ) -> ConversationalPrompt:
        """
        History-aware prompt.

        Only the last ``max_history_length`` turns are replayed, verbatim,
        ahead of the context and the current question.
        """
        guidelines = [
            "- Use the provided context to answer questions accurately",
            "- Consider the conversation history for continuity",
            "- Cite sources when using information from the context",
            "- If information isn't in the context, clearly state this",
            "- Maintain a conversational tone while being informative",
        ]
        if include_source_citation:
            guidelines.append("- Use format [Source: name] for citations")

        system_prompt = (
            "You are a helpful AI assistant engaged in a conversation. You answer questions "
            "based on provided context and conversation history.\n\nGUIDELINES:\n" + "\n".join(guidelines)
        )

        turns = _normalise_turns(history or [])
        recent = turns[-max_history_length:] if max_history_length > 0 else []
        history_text = ""
        if recent:
            lines = "\n".join(f"{turn.role}: {turn.content}" for turn in recent)
            history_text = f"Previous conversation:\n{lines}\n\n"

        user_prompt = (
            f"{history_text}Context Information:\n{context.text}\n\n"
            f"Current Question: {question}\n\n"
            "Please respond based on the context and conversation history."
        )
        return ConversationalPrompt(system_prompt=system_prompt, user_prompt=user_prompt, history=history_text)

    @staticmethod
    def build_summarization_prompt(
        text: str,
        max_words: int = 500,
        style: SummaryStyle = SummaryStyle.PARAGRAPH,
        focus: Optional[str] = None,
    ) -> str:
        instruction = f"Please summarize the following text in approximately {max_words} words."
        instruction += SUMMARY_INSTRUCTIONS[SummaryStyle(style)]
        if focus:
            instruction += f" Pay special attention to information about: {focus}."
        return f"{instruction}\n\nText to summarize:\n{text}\n\nSummary:"

    @staticmethod
    def build_question_generation_prompt(
        context: str,
        num_questions: int = 5,
        question_types: Optional[List[str]] = None,
        difficulty: str = "medium",
    ) -> str:
        question_types = question_types or ["factual", "analytical", "comparative"]
        return (
            f"Based on the following context, generate {num_questions} {difficulty} questions "
            "that could be answered using this information.\n\n"
            f"Question types to include: {', '.join(question_types)}\n\n"
            f"Context:\n{context}\n\n"
            "Generate diverse, thoughtful questions that would help someone understand the key "
            "concepts and details in this content.\n\nQuestions:"
        )

    @staticmethod
    def build_classification_prompt(
        text: str,
        categories: Sequence[str],
        include_confidence: bool = False,
        allow_multiple: bool = False,
    ) -> str:
        quantity = "one or more" if allow_multiple else "one"
        instruction = f"Classify the following text into {quantity} of these categories: {', '.join(categories)}."
        if include_confidence:
            instruction += " Include a confidence score (0-1) for your classification."
        return f"{instruction}\n\nText to classify:\n{text}\n\nClassification:"

    @staticmethod
    def build_custom_prompt(template: PromptTemplate, variables: Optional[Dict[str, str]] = None) -> str:
        """Substitute ``{{name}}`` placeholders; unknown placeholders are left as-is."""
        values = {**template.variables, **(variables or {})}
        prompt = re.sub(
            r"\{\{(\w+)\}\}",
            lambda match: values.get(match.group(1), match.group(0)),
            template.user,
        )
        if template.system:
            prompt = f"{template.system}\n\n{prompt}"
        return prompt

    @staticmethod
    def format_context_for_prompt(context: str, max_length: int = 4000) -> str:
        """Length guard for raw context text, ending on a whole sentence where possible."""
        if len(context) <= max_length:
            return context
        return truncate_at_boundary(context, max_length) + TRUNCATION_MARKER


def _normalise_turns(turns: Sequence[Turn]) -> List[ConversationTurn]:
    return [turn if isinstance(turn, ConversationTurn) else ConversationTurn(**turn) for turn in turns]
