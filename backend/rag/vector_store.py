"""
ChromaDB vector search gateway for the knowledge corpus.

The corpus is written by an offline ingestion job; this module only reads it.
Each record carries the chunk text as its document and the citation fields
(source_type, source_title, source_url, source_section) as metadata.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
import chromadb
from chromadb.config import Settings

from .models import KnowledgeChunk, RetrievedChunk
from .config import VectorStoreConfig

logger = logging.getLogger(__name__)


class IVectorStore(ABC):
    """Interface for vector search over the knowledge corpus."""

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        threshold: float,
        limit: int
    ) -> List[RetrievedChunk]:
        """
        Return at most `limit` chunks with similarity >= threshold.

        Results are ordered by descending similarity, ties by chunk id.
        """
        pass


def rank_chunks(candidates: List[RetrievedChunk], threshold: float, limit: int) -> List[RetrievedChunk]:
    """Filter by threshold and order deterministically."""
    kept = [c for c in candidates if c.similarity >= threshold]
    kept.sort(key=lambda c: (-c.similarity, c.chunk.id))
    return kept[:limit]


def clamp_similarity(value: float) -> float:
    return max(0.0, min(1.0, value))


class ChromaVectorStore(IVectorStore):
    """
    ChromaDB implementation of the vector search gateway.

    Uses a cosine collection, so similarity = 1 - distance.
    """

    def __init__(self, config: VectorStoreConfig, client: Optional["chromadb.ClientAPI"] = None):
        self.config = config

        if client is None:
            client = chromadb.PersistentClient(
                path=str(config.persist_directory),
                settings=Settings(anonymized_telemetry=False)
            )
        self.client = client

        self.collection = self.client.get_or_create_collection(
            name=config.collection_name,
            metadata={"hnsw:space": config.distance_function}
        )

        logger.info(
            f"Initialized ChromaDB vector store: {config.collection_name} "
            f"at {config.persist_directory}"
        )

    async def search(
        self,
        query_embedding: List[float],
        threshold: float,
        limit: int
    ) -> List[RetrievedChunk]:
        """Query the collection off the event loop and convert hits to RetrievedChunks."""
        try:
            results = await asyncio.to_thread(
                self.collection.query,
                query_embeddings=[query_embedding],
                n_results=limit,
                include=["documents", "metadatas", "distances"]
            )
        except Exception as e:
            logger.error(f"Error searching ChromaDB: {e}")
            raise

        if not results["ids"] or not results["ids"][0]:
            logger.info("Vector search returned no candidates")
            return []

        # Chroma returns one list per query embedding
        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]

        candidates = []
        for chunk_id, text, metadata, distance in zip(ids, documents, metadatas, distances):
            metadata = metadata or {}
            chunk = KnowledgeChunk(
                id=chunk_id,
                content=text or "",
                source_type=metadata.get("source_type", ""),
                source_title=metadata.get("source_title", ""),
                source_url=metadata.get("source_url") or None,
                source_section=metadata.get("source_section") or None,
            )
            candidates.append(
                RetrievedChunk(chunk=chunk, similarity=clamp_similarity(1.0 - distance))
            )

        ranked = rank_chunks(candidates, threshold, limit)
        logger.info(f"Vector search kept {len(ranked)}/{len(candidates)} candidates at threshold {threshold}")
        return ranked
