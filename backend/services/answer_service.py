"""
Answer service - orchestrates retrieval, prompting, and generation.

Both modes share retrieval and prompt construction, so citation ordinals
are identical for the same question and corpus state:
- ask: await the whole answer, return {answer, sources}
- open_stream: retrieve now, hand back a transport that generates lazily
"""
import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from rag.config import ServiceConfig, GenerationConfig
from rag.errors import InputInvalidError
from rag.generation import IGenerationClient
from rag.models import RetrievalOutcome, Source, SupplementaryDocument
from rag.prompt_builder import Prompt, build_prompt
from rag.retrieval_service import RetrievalService
from rag.streaming import StreamTransport

logger = logging.getLogger(__name__)


class Answer(BaseModel):
    """Complete answer with its citations."""
    answer: str
    sources: List[Source] = Field(default_factory=list)


class AnswerService:
    """Application service behind the ask endpoints."""

    def __init__(
        self,
        retrieval_service: RetrievalService,
        generation_client: IGenerationClient,
        service_config: Optional[ServiceConfig] = None,
        generation_config: Optional[GenerationConfig] = None
    ):
        self.retrieval_service = retrieval_service
        self.generation_client = generation_client
        self.service_config = service_config or ServiceConfig()
        self.generation_config = generation_config or GenerationConfig()

    def validate_query(self, query: Optional[str]) -> str:
        """Trim and bound the question before any collaborator is called."""
        if not isinstance(query, str):
            raise InputInvalidError("Message is required and must be a string")
        trimmed = query.strip()
        if not trimmed:
            raise InputInvalidError("Message cannot be empty")
        limit = self.service_config.max_query_chars
        if len(trimmed) > limit:
            raise InputInvalidError(f"Message is too long (max {limit} characters)")
        return trimmed

    async def _prepare(
        self,
        query: str,
        document: Optional[SupplementaryDocument]
    ) -> Tuple[RetrievalOutcome, Prompt]:
        outcome = await self.retrieval_service.retrieve(query, document)
        prompt = build_prompt(
            question=query,
            grounding_context=outcome.grounding_context,
            source_count=len(outcome.sources),
            document_name=outcome.document_name
        )
        return outcome, prompt

    async def ask(
        self,
        query: str,
        document: Optional[SupplementaryDocument] = None,
        caller: str = "anonymous"
    ) -> Answer:
        """Answer a question synchronously."""
        question = self.validate_query(query)
        logger.info(f"Sync question from {caller} ({len(question)} chars)")

        outcome, prompt = await self._prepare(question, document)
        answer = await self.generation_client.generate(prompt)

        return Answer(answer=answer, sources=outcome.sources)

    async def open_stream(
        self,
        query: str,
        document: Optional[SupplementaryDocument] = None,
        caller: str = "anonymous"
    ) -> StreamTransport:
        """
        Run retrieval and return a transport ready to stream.

        Raises before the response is committed when validation or retrieval
        fails; generation only starts when the transport is consumed.
        """
        question = self.validate_query(query)
        logger.info(f"Streaming question from {caller} ({len(question)} chars)")

        outcome, prompt = await self._prepare(question, document)
        return StreamTransport(
            sources=outcome.sources,
            fragments=self.generation_client.generate_stream(prompt),
            fragment_timeout=self.generation_config.fragment_timeout_seconds
        )
