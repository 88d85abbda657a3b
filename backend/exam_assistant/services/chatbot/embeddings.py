"""
Embedding Gateway

Converts text into a fixed-length vector through the configured
OpenAI-compatible /embeddings endpoint (LM Studio serving nomic-embed by
default, 768 dimensions).

A failed call raises EmbeddingUnavailable. Callers must never substitute a
zero vector: during a rebuild a failed embedding drops that one document.
"""

import logging

from langchain_openai import OpenAIEmbeddings

from exam_assistant.core.config import get_settings
from exam_assistant.services.chatbot.errors import (
    ChatValidationError,
    EmbeddingUnavailable,
)

logger = logging.getLogger(__name__)


class EmbeddingGateway:
    def __init__(self, client: OpenAIEmbeddings | None = None, dimension: int | None = None):
        settings = get_settings()
        self.dimension = dimension or settings.embedding_dimension
        self.client = client or OpenAIEmbeddings(
            model=settings.embedding_model,
            openai_api_key=settings.llm_api_key,
            openai_api_base=settings.llm_api_url,
            request_timeout=settings.request_timeout_seconds,
            max_retries=1,
            # Send raw strings; local servers do not accept tiktoken ids
            check_embedding_ctx_length=False,
        )

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ChatValidationError("Cannot embed empty text")

        try:
            vector = await self.client.aembed_query(text)
        except Exception as e:
            logger.error("Embedding request failed: %s", e)
            raise EmbeddingUnavailable("Failed to generate embeddings") from e

        if len(vector) != self.dimension:
            logger.error(
                "Embedding has %d dimensions, index expects %d", len(vector), self.dimension
            )
            raise EmbeddingUnavailable(
                f"Embedding dimension {len(vector)} does not match index dimension {self.dimension}"
            )
        return [float(x) for x in vector]
