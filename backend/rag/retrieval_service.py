"""
Retrieval service for grounded question answering.

Provides the high-level retrieval interface:
- Query expansion and embedding
- Threshold search with optional fallback
- Merging of caller-attached documents
- Source numbering and grounding context
"""

import logging
import time
from typing import Optional

from .config import RetrievalConfig
from .embeddings import IEmbeddingService
from .models import RetrievalOutcome, SupplementaryDocument
from .rag_graph import create_retrieval_graph
from .rag_nodes import RetrievalNodes
from .vector_store import IVectorStore

logger = logging.getLogger(__name__)


class RetrievalService:
    """
    Service for retrieving and numbering the passages that ground an answer.

    Stateless across requests; safe to share between concurrent requests.
    """

    def __init__(
        self,
        vector_store: IVectorStore,
        embedding_service: IEmbeddingService,
        config: RetrievalConfig
    ):
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.config = config
        self.graph = create_retrieval_graph(
            RetrievalNodes(embedding_service, vector_store, config)
        )

        logger.info("Initialized retrieval service")

    async def retrieve(
        self,
        query: str,
        document: Optional[SupplementaryDocument] = None
    ) -> RetrievalOutcome:
        """
        Retrieve numbered sources and grounding context for a query.

        Args:
            query: Validated user question (un-expanded)
            document: Optional caller-attached document, always cited as [1]

        Returns:
            RetrievalOutcome with sources and grounding_context

        Raises:
            RetrievalUnavailableError: embedding or vector search failed or timed out
        """
        start_time = time.time()

        final_state = await self.graph.ainvoke({"query": query, "document": document})

        latency_ms = (time.time() - start_time) * 1000
        outcome = RetrievalOutcome(
            sources=final_state.get("sources", []),
            grounding_context=final_state["grounding_context"],
            expanded_query=final_state.get("expanded_query", query),
            threshold_used=final_state.get("threshold_used", self.config.similarity_threshold),
            candidate_count=final_state.get("search_hits", 0),
            latency_ms=latency_ms,
            document_name=document.name if document else None,
        )

        logger.info(
            f"Retrieval produced {len(outcome.sources)} sources "
            f"from {outcome.candidate_count} search hits in {latency_ms:.2f}ms"
        )
        return outcome
