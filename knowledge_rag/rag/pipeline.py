"""
RAG Service

Orchestrates Retrieve -> Context -> Prompt -> (rate limit) -> Generate for
single-shot, streaming and history-aware queries.
"""

from typing import AsyncIterator, List, Optional, Sequence, Tuple, Union

import structlog
from pydantic import BaseModel, Field

from ..integrations.base import LanguageModel, Turn
from ..models.rag import (
    AnswerResult,
    BuiltContext,
    ConversationTurn,
    HealthReport,
    IndexStats,
    ScoredMatch,
    StreamingAnswer,
    StreamMetadata,
)
from .config import RAGConfig
from .context import ContextBuilder, ContextOptions, ContextStrategy
from .exceptions import ValidationError
from .prompts import PromptBuilder, ResponseStyle
from .rate_limiter import RateLimiter
from .retriever import DocumentRetriever, RetrievalOptions, RetrievalStrategy

logger = structlog.get_logger(__name__)

NO_ANSWER_MESSAGE = "I couldn't find any relevant information in the knowledge base to answer your question."


class QueryOptions(BaseModel):
    """Caller options for one query. ``None`` falls back to RAGConfig."""
    k: Optional[int] = Field(default=None, gt=0)
    include_source_citation: bool = True
    response_style: ResponseStyle = ResponseStyle.DETAILED
    filter_by_source: Optional[List[str]] = None
    stream: bool = False
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    retrieval_strategy: RetrievalStrategy = RetrievalStrategy.DEFAULT
    context_strategy: ContextStrategy = ContextStrategy.DEFAULT
    user_id: Optional[str] = None
    threshold: Optional[float] = None
    rerank: bool = False
    include_matches: bool = True


class RAGService:
    """
    Question answering over the knowledge base.

    All collaborators are injected; the only state kept across queries is
    the rate limiter's last-call timestamp.
    """

    def __init__(
        self,
        retriever: DocumentRetriever,
        context_builder: ContextBuilder,
        llm: LanguageModel,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[RAGConfig] = None,
    ):
        self.config = config or RAGConfig()
        self.retriever = retriever
        self.context_builder = context_builder
        self.llm = llm
        self.rate_limiter = rate_limiter or RateLimiter(self.config.generation.min_request_interval)

    async def query(self, question: str, options: Optional[QueryOptions] = None) -> AnswerResult:
        """
        Answer a question from retrieved context.

        Args:
            question: Natural-language question
            options: Retrieval, layout and generation options

        Returns:
            AnswerResult; confidence is the top match score, 0 when nothing matched
        """
        options = options or QueryOptions()
        matches, context = await self._prepare(question, options)
        if not matches:
            return self._no_answer()

        prompt = PromptBuilder.build_answer_prompt(
            question,
            context,
            include_source_citation=options.include_source_citation,
            response_style=options.response_style,
        )

        await self.rate_limiter.wait()
        answer = await self.llm.generate_text(
            prompt, temperature=self._temperature(options), max_tokens=self._max_tokens(options)
        )

        result = self._result(answer, matches, context, options)
        logger.info("Answered query", chunks=result.chunk_count, confidence=round(result.confidence, 3))
        return result

    async def query_stream(self, question: str, options: Optional[QueryOptions] = None) -> StreamingAnswer:
        """
        Streaming variant of ``query``.

        Retrieval and prompt errors are raised here. Generation errors are
        raised while iterating the returned stream.
        """
        options = options or QueryOptions()
        matches, context = await self._prepare(question, options)
        if not matches:
            return StreamingAnswer(_single(NO_ANSWER_MESSAGE), StreamMetadata())

        prompt = PromptBuilder.build_answer_prompt(
            question,
            context,
            include_source_citation=options.include_source_citation,
            response_style=options.response_style,
        )
        metadata = StreamMetadata(
            sources=context.sources,
            chunk_count=len(matches),
            confidence=matches[0].score,
        )
        return StreamingAnswer(self._generate_stream(prompt, options), metadata)

    async def query_with_history(
        self,
        question: str,
        history: Optional[Sequence[Turn]] = None,
        options: Optional[QueryOptions] = None,
    ) -> AnswerResult:
        """History-aware answer; retrieval still uses only the current question."""
        options = options or QueryOptions()
        if not history:
            return await self.query(question, options)

        matches, context = await self._prepare(question, options)
        if not matches:
            return self._no_answer()

        prompt = PromptBuilder.build_conversational_prompt(
            question,
            context,
            history,
            include_source_citation=options.include_source_citation,
            max_history_length=self.config.generation.max_history_length,
        )

        await self.rate_limiter.wait()
        answer = await self.llm.generate_with_history(
            [ConversationTurn(role="user", content=prompt.user_prompt)],
            system_prompt=prompt.system_prompt,
            temperature=self._temperature(options),
            max_tokens=self._max_tokens(options),
        )

        result = self._result(answer, matches, context, options)
        logger.info(
            "Answered query with history",
            turns=len(history),
            chunks=result.chunk_count,
            confidence=round(result.confidence, 3),
        )
        return result

    async def answer(
        self,
        question: str,
        options: Optional[QueryOptions] = None,
        history: Optional[Sequence[Turn]] = None,
    ) -> Union[AnswerResult, StreamingAnswer]:
        """Dispatch to the streaming, history-aware or plain query mode."""
        options = options or QueryOptions()
        if options.stream:
            return await self.query_stream(question, options)
        if history:
            return await self.query_with_history(question, history, options)
        return await self.query(question, options)

    async def health_check(self) -> HealthReport:
        """Exercise retrieval and one tiny generation call, reporting per component."""
        components = {}
        try:
            matches = await self.retriever.retrieve_chunks("test query", RetrievalOptions(k=1))
            components["vector_index"] = "connected"
            components["retrieval"] = "working"

            await self.rate_limiter.wait()
            await self.llm.generate_text("Hello", max_tokens=10)
            components["language_model"] = "connected"
        except Exception as e:
            logger.warning("Health check failed", components=components, error=str(e))
            return HealthReport(status="unhealthy", components=components, error=str(e))

        return HealthReport(status="healthy", components=components, total_chunks=len(matches))

    async def stats(self) -> IndexStats:
        return await self.retriever.index.get_stats()

    async def _prepare(self, question: str, options: QueryOptions) -> Tuple[List[ScoredMatch], BuiltContext]:
        if not question or not question.strip():
            raise ValidationError("Question is required", field="question")

        logger.info(
            "Processing query",
            user_id=options.user_id or "anonymous",
            retrieval_strategy=options.retrieval_strategy.value,
            context_strategy=options.context_strategy.value,
        )
        matches = await self.retriever.retrieve(
            question,
            RetrievalOptions(
                k=options.k,
                threshold=options.threshold,
                filter_by_source=options.filter_by_source,
                user_id=options.user_id,
                rerank=options.rerank,
                strategy=options.retrieval_strategy,
            ),
        )
        # A non-positive score carries no evidence, whatever the threshold
        matches = [match for match in matches if match.score > 0]
        if not matches:
            logger.info("No relevant chunks found")
            return [], BuiltContext(text="")

        context = self.context_builder.build_for_strategy(
            matches, question, options.context_strategy, ContextOptions(include_metadata=True)
        )
        logger.debug("Built context", length=context.total_length, sources=len(context.sources))
        return matches, context

    async def _generate_stream(self, prompt: str, options: QueryOptions) -> AsyncIterator[str]:
        await self.rate_limiter.wait()
        async for piece in self.llm.generate_stream(
            prompt, temperature=self._temperature(options), max_tokens=self._max_tokens(options)
        ):
            yield piece

    @staticmethod
    def _no_answer() -> AnswerResult:
        return AnswerResult(answer=NO_ANSWER_MESSAGE, sources=[], chunk_count=0, confidence=0.0, matches=[])

    @staticmethod
    def _result(
        answer: str, matches: List[ScoredMatch], context: BuiltContext, options: QueryOptions
    ) -> AnswerResult:
        return AnswerResult(
            answer=answer,
            sources=context.sources,
            chunk_count=len(matches),
            confidence=matches[0].score,
            matches=matches if options.include_matches else None,
        )

    def _temperature(self, options: QueryOptions) -> float:
        if options.temperature is None:
            return self.config.generation.temperature
        return options.temperature

    def _max_tokens(self, options: QueryOptions) -> int:
        return options.max_tokens or self.config.generation.max_tokens


async def _single(message: str) -> AsyncIterator[str]:
    yield message
