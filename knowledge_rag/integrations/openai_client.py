"""
Embedding and language-model clients backed by OpenAI or Azure OpenAI.

Azure OpenAI is used when an Azure endpoint is configured, the public OpenAI
API otherwise. SDK failures are re-raised as ExternalServiceError so callers
can tell which service and operation failed.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Sequence, Union

import structlog
from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError

from ..config.settings import Settings
from ..models.rag import ConversationTurn
from ..rag.exceptions import ExternalServiceError
from .base import Turn

logger = structlog.get_logger(__name__)


def create_openai_client(settings: Settings) -> Union[AsyncOpenAI, AsyncAzureOpenAI]:
    if settings.uses_azure_openai:
        return AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
            azure_endpoint=settings.azure_openai_endpoint,
        )
    return AsyncOpenAI(api_key=settings.openai_api_key or None)


class _OpenAIService:
    """Shared lazy client handling for the OpenAI-backed services."""

    service_name = "openai"

    def __init__(self, settings: Settings, client: Optional[Union[AsyncOpenAI, AsyncAzureOpenAI]] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Union[AsyncOpenAI, AsyncAzureOpenAI]:
        if self._client is None:
            self._client = create_openai_client(self.settings)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class OpenAIEmbeddingClient(_OpenAIService):
    """
    Generate embeddings for chunks and queries.
    """

    service_name = "embedding"

    def __init__(self, settings: Settings, client=None):
        super().__init__(settings, client)
        self.model = settings.effective_embedding_model
        self.batch_size = settings.embedding_batch_size
        self.batch_delay = settings.embedding_batch_delay

    async def embed_text(self, text: str) -> List[float]:
        embeddings = await self.embed_texts([text])
        return embeddings[0]

    async def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in batches, pausing between batches to respect provider limits.

        Args:
            texts: Texts to embed

        Returns:
            One embedding vector per text, in input order
        """
        embeddings: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = [self._prepare_text(text) for text in texts[start:start + self.batch_size]]
            try:
                response = await self.client.embeddings.create(input=batch, model=self.model)
            except OpenAIError as e:
                logger.error("Embedding request failed", model=self.model, batch_size=len(batch), error=str(e))
                raise ExternalServiceError(self.service_name, "embed_texts", original_error=e) from e
            embeddings.extend(item.embedding for item in response.data)

            if start + self.batch_size < len(texts):
                await asyncio.sleep(self.batch_delay)
        return embeddings

    async def embed_query(self, text: str) -> List[float]:
        return await self.embed_text(text)

    @staticmethod
    def _prepare_text(text: str) -> str:
        # The embeddings endpoint rejects empty input
        return " ".join(text.split()) or " "


class OpenAIChatClient(_OpenAIService):
    """
    Chat-completion client supporting single-shot, streaming and history modes.
    """

    service_name = "language_model"

    def __init__(self, settings: Settings, client=None):
        super().__init__(settings, client)
        self.model = settings.effective_chat_model
        self.default_temperature = settings.generation_temperature
        self.default_max_tokens = settings.generation_max_tokens

    async def generate_text(
        self, prompt: str, temperature: Optional[float] = None, max_tokens: Optional[int] = None
    ) -> str:
        messages = [{"role": "user", "content": prompt}]
        return await self._complete(messages, temperature, max_tokens, operation="generate_text")

    async def generate_stream(
        self, prompt: str, temperature: Optional[float] = None, max_tokens: Optional[int] = None
    ) -> AsyncIterator[str]:
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature(temperature),
                max_tokens=max_tokens or self.default_max_tokens,
                stream=True,
            )
            async for event in stream:
                if not event.choices:
                    continue
                content = event.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            logger.error("Streaming generation failed", model=self.model, error=str(e))
            raise ExternalServiceError(self.service_name, "generate_stream", original_error=e) from e

    async def generate_with_history(
        self,
        turns: Sequence[Turn],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for turn in turns:
            if isinstance(turn, ConversationTurn):
                messages.append({"role": turn.role, "content": turn.content})
            else:
                messages.append({"role": turn["role"], "content": turn["content"]})

        if not any(message["role"] == "user" for message in messages):
            raise ExternalServiceError(
                self.service_name, "generate_with_history", message="No user message found in history"
            )
        return await self._complete(messages, temperature, max_tokens, operation="generate_with_history")

    async def _complete(self, messages, temperature, max_tokens, operation: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self._temperature(temperature),
                max_tokens=max_tokens or self.default_max_tokens,
            )
        except OpenAIError as e:
            logger.error("Chat completion failed", model=self.model, operation=operation, error=str(e))
            raise ExternalServiceError(self.service_name, operation, original_error=e) from e

        content = response.choices[0].message.content or ""
        logger.info("Generated completion", model=self.model, operation=operation, length=len(content))
        return content.strip()

    def _temperature(self, temperature: Optional[float]) -> float:
        return self.default_temperature if temperature is None else temperature
