"""
Embedding service for retrieval using OpenAI text-embedding-3-small.

Provides abstraction layer for query embedding with:
- Retry logic with exponential backoff
- Error handling
- Interface so tests and other providers can be swapped in
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List
import openai
from openai import AsyncOpenAI

from .config import EmbeddingConfig

logger = logging.getLogger(__name__)


class IEmbeddingService(ABC):
    """Interface for embedding services."""

    @abstractmethod
    async def embed_query(self, query: str) -> List[float]:
        """
        Generate embedding for a single query.

        Args:
            query: Query text to embed

        Returns:
            Embedding vector as List[float]
        """
        pass


class OpenAIEmbeddingService(IEmbeddingService):
    """
    OpenAI embedding service using text-embedding-3-small.

    Features:
    - 1536 dimensions
    - Exponential backoff retry on rate limits and API errors
    """

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self.client = AsyncOpenAI(api_key=config.api_key)
        self.model = config.model_name

        logger.info(f"Initialized OpenAI embedding service with model: {self.model}")

    async def embed_query(self, query: str) -> List[float]:
        """Generate embedding for single query with retry logic."""
        for attempt in range(self.config.max_retries):
            try:
                response = await self.client.embeddings.create(
                    model=self.model,
                    input=query,
                    timeout=self.config.timeout_seconds
                )
                return response.data[0].embedding

            except openai.RateLimitError:
                wait_time = 2 ** attempt
                logger.warning(
                    f"Rate limit hit, retrying in {wait_time}s (attempt {attempt + 1}/{self.config.max_retries})"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(wait_time)
                else:
                    logger.error("Max retries reached for query embedding")
                    raise

            except openai.APIError as e:
                logger.error(f"OpenAI API error: {e}")
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    raise

        raise RuntimeError("Embedding retries exhausted")
