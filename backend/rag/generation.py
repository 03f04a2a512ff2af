"""
Answer generation over LangChain chat models.

Two call shapes share one interface:
- generate: await the complete answer (sync mode)
- generate_stream: async iterator of text fragments as the model produces them
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

from langchain_openai import ChatOpenAI

from .config import GenerationConfig
from .errors import GenerationFailedError
from .prompt_builder import Prompt

logger = logging.getLogger(__name__)


class IGenerationClient(ABC):
    """Interface for answer generation."""

    @abstractmethod
    async def generate(self, prompt: Prompt) -> str:
        """Return the complete answer for the prompt."""
        pass

    @abstractmethod
    def generate_stream(self, prompt: Prompt) -> AsyncIterator[str]:
        """Yield answer fragments in production order."""
        pass


class ChatOpenAIGenerationClient(IGenerationClient):
    """Generation client backed by langchain_openai.ChatOpenAI."""

    def __init__(self, config: GenerationConfig, api_key: str):
        self.config = config
        self.llm = ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            openai_api_key=api_key
        )

        logger.info(f"Initialized generation client with model: {config.model_name}")

    async def generate(self, prompt: Prompt) -> str:
        try:
            response = await self.llm.ainvoke(prompt.to_messages())
        except Exception as e:
            logger.error(f"Answer generation failed: {e}", exc_info=True)
            raise GenerationFailedError("Answer generation failed") from e

        content = response.content
        if not isinstance(content, str):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return content

    async def generate_stream(self, prompt: Prompt) -> AsyncIterator[str]:
        try:
            async for chunk in self.llm.astream(prompt.to_messages()):
                text = chunk.content
                if isinstance(text, str) and text:
                    yield text
        except Exception as e:
            logger.error(f"Answer streaming failed: {e}", exc_info=True)
            raise GenerationFailedError("Answer generation was interrupted") from e
