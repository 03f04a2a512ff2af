"""
LangGraph nodes for the retrieval pipeline.

Implements 6 nodes:
1. expand_query - Append domain synonyms for embedding
2. embed_query - Vectorize the expanded query
3. search - Threshold search with optional one-step fallback
4. merge_document - Prepend a caller-attached document
5. assemble_sources - Deduplicate and number citations
6. build_context - Prompt-ready grounding context

Each node is an async method that takes RetrievalState and returns a partial update.
Collaborator failures are raised as RetrievalUnavailableError and abort the graph.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, TypedDict

from .config import RetrievalConfig
from .context_builder import (
    assemble_sources,
    build_grounding_context,
    document_chunk,
    similarity_summary,
)
from .embeddings import IEmbeddingService
from .errors import RetrievalUnavailableError
from .expansion import expand_query
from .models import RetrievedChunk, Source, SupplementaryDocument
from .vector_store import IVectorStore

logger = logging.getLogger(__name__)


class RetrievalState(TypedDict, total=False):
    """State flowing through the retrieval subgraph."""

    query: str
    document: Optional[SupplementaryDocument]
    expanded_query: str
    query_embedding: List[float]
    threshold_used: float
    candidates: List[RetrievedChunk]
    search_hits: int
    sources: List[Source]
    contents: List[str]
    grounding_context: str


class RetrievalNodes:
    """Retrieval nodes bound to their collaborators."""

    def __init__(
        self,
        embedding_service: IEmbeddingService,
        vector_store: IVectorStore,
        config: RetrievalConfig
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.config = config

    async def expand_query(self, state: RetrievalState) -> Dict[str, Any]:
        query = state["query"]
        expanded = expand_query(query)
        if expanded != query:
            logger.info(f"Query expanded: '{query}' → '{expanded}'")
        return {"expanded_query": expanded}

    async def embed_query(self, state: RetrievalState) -> Dict[str, Any]:
        try:
            embedding = await asyncio.wait_for(
                self.embedding_service.embed_query(state["expanded_query"]),
                timeout=self.config.embed_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Query embedding timed out after {self.config.embed_timeout_seconds}s")
            raise RetrievalUnavailableError("Knowledge base search timed out") from e
        except Exception as e:
            logger.error(f"Query embedding failed: {e}", exc_info=True)
            raise RetrievalUnavailableError("Knowledge base search is unavailable") from e

        if not embedding:
            raise RetrievalUnavailableError("Knowledge base search is unavailable")
        return {"query_embedding": embedding}

    async def _search_once(self, embedding: List[float], threshold: float) -> List[RetrievedChunk]:
        try:
            return await asyncio.wait_for(
                self.vector_store.search(
                    query_embedding=embedding,
                    threshold=threshold,
                    limit=self.config.top_k
                ),
                timeout=self.config.search_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Vector search timed out after {self.config.search_timeout_seconds}s")
            raise RetrievalUnavailableError("Knowledge base search timed out") from e
        except Exception as e:
            logger.error(f"Vector search failed: {e}", exc_info=True)
            raise RetrievalUnavailableError("Knowledge base search is unavailable") from e

    async def search(self, state: RetrievalState) -> Dict[str, Any]:
        threshold = self.config.similarity_threshold
        chunks = await self._search_once(state["query_embedding"], threshold)

        fallback = self.config.fallback_threshold
        if not chunks and fallback is not None:
            logger.info(f"No chunks at threshold {threshold}, retrying once at {fallback}")
            threshold = fallback
            chunks = await self._search_once(state["query_embedding"], threshold)

        summary = similarity_summary(chunks)
        if summary:
            logger.info(f"Retrieved {len(chunks)} chunks (threshold: {threshold}): {summary}")
        else:
            logger.info(f"No chunks found with threshold {threshold}")

        return {"candidates": chunks, "threshold_used": threshold, "search_hits": len(chunks)}

    async def merge_document(self, state: RetrievalState) -> Dict[str, Any]:
        candidates = list(state.get("candidates", []))
        document = state.get("document")
        if document is None:
            return {"candidates": candidates}
        logger.info(f"Document analysis mode: '{document.name}' ({len(document.content)} chars)")
        return {"candidates": [document_chunk(document)] + candidates}

    async def assemble_sources(self, state: RetrievalState) -> Dict[str, Any]:
        sources, contents = assemble_sources(state.get("candidates", []))
        return {"sources": sources, "contents": contents}

    async def build_context(self, state: RetrievalState) -> Dict[str, Any]:
        context = build_grounding_context(
            state.get("sources", []),
            state.get("contents", []),
            self.config.max_chunk_chars
        )
        return {"grounding_context": context}
