"""
RAG configuration dataclasses for all knowledge assistant components.

Provides centralized configuration with sensible defaults for:
- Embeddings (model selection, timeouts, retries)
- Vector store (persist directory, collection name)
- Retrieval (threshold, result count, fallback policy, context budget)
- Generation (model, temperature, per-fragment gap)
- Service (query length bound)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""

    model_name: str = "text-embedding-3-small"  # OpenAI model
    embedding_dim: int = 1536  # Dimensions for text-embedding-3-small
    max_retries: int = 3  # Retry attempts for API failures
    timeout_seconds: float = 30.0  # Per-request API timeout

    # Environment variable for API key
    api_key_env_var: str = "OPENAI_API_KEY"

    @property
    def api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv(self.api_key_env_var)
        if not key:
            raise ValueError(
                f"OpenAI API key not found in environment variable: {self.api_key_env_var}"
            )
        return key


@dataclass
class VectorStoreConfig:
    """Configuration for ChromaDB vector store."""

    persist_directory: Path = field(default_factory=lambda: Path("data/knowledge/chroma"))
    collection_name: str = "knowledge_chunks"
    distance_function: str = "cosine"  # Similarity metric

    def __post_init__(self):
        """Ensure persist directory exists."""
        self.persist_directory = Path(self.persist_directory)
        self.persist_directory.mkdir(parents=True, exist_ok=True)


@dataclass
class RetrievalConfig:
    """Configuration for retrieval service."""

    top_k: int = 5  # Maximum chunks returned by one search
    similarity_threshold: float = 0.3  # Minimum similarity score (0-1)
    fallback_threshold: Optional[float] = None  # One retry at this threshold when nothing matched
    max_chunk_chars: int = 4000  # Per-source character budget in the grounding context
    embed_timeout_seconds: float = 15.0
    search_timeout_seconds: float = 15.0

    def __post_init__(self):
        """Validate configuration."""
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError("similarity_threshold must be between 0 and 1")
        if self.fallback_threshold is not None:
            if not 0 <= self.fallback_threshold <= 1:
                raise ValueError("fallback_threshold must be between 0 and 1")
            if self.fallback_threshold >= self.similarity_threshold:
                raise ValueError("fallback_threshold must be lower than similarity_threshold")
        if self.max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be positive")
        if self.embed_timeout_seconds <= 0 or self.search_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")


@dataclass
class GenerationConfig:
    """Configuration for the answer generation model."""

    model_name: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 2048
    fragment_timeout_seconds: Optional[float] = None  # Max gap between streamed fragments

    def __post_init__(self):
        """Validate configuration."""
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.fragment_timeout_seconds is not None and self.fragment_timeout_seconds <= 0:
            raise ValueError("fragment_timeout_seconds must be positive")


@dataclass
class ServiceConfig:
    """Limits applied to inbound questions."""

    max_query_chars: int = 2000

    def __post_init__(self):
        if self.max_query_chars <= 0:
            raise ValueError("max_query_chars must be positive")


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}: {raw!r}")
        return None


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return None


@dataclass
class RAGConfig:
    """Aggregated knowledge assistant configuration."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    @classmethod
    def from_env(cls) -> "RAGConfig":
        """Create configuration with environment variable overrides."""
        embedding = EmbeddingConfig()
        if model := os.getenv("EMBEDDING_MODEL"):
            embedding.model_name = model

        vector_store = VectorStoreConfig(
            persist_directory=Path(os.getenv("CHROMA_PERSIST_DIR", "data/knowledge/chroma")),
            collection_name=os.getenv("CHROMA_COLLECTION", "knowledge_chunks"),
        )

        retrieval_kwargs = {}
        if (threshold := _env_float("RAG_SIMILARITY_THRESHOLD")) is not None:
            retrieval_kwargs["similarity_threshold"] = threshold
        if (fallback := _env_float("RAG_FALLBACK_THRESHOLD")) is not None:
            retrieval_kwargs["fallback_threshold"] = fallback
        if (top_k := _env_int("RAG_TOP_K")) is not None:
            retrieval_kwargs["top_k"] = top_k
        if (max_chars := _env_int("RAG_MAX_CHUNK_CHARS")) is not None:
            retrieval_kwargs["max_chunk_chars"] = max_chars
        if (embed_timeout := _env_float("RAG_EMBED_TIMEOUT")) is not None:
            retrieval_kwargs["embed_timeout_seconds"] = embed_timeout
        if (search_timeout := _env_float("RAG_SEARCH_TIMEOUT")) is not None:
            retrieval_kwargs["search_timeout_seconds"] = search_timeout

        generation_kwargs = {}
        if model := os.getenv("GENERATION_MODEL"):
            generation_kwargs["model_name"] = model
        if (temperature := _env_float("GENERATION_TEMPERATURE")) is not None:
            generation_kwargs["temperature"] = temperature
        if (max_tokens := _env_int("GENERATION_MAX_TOKENS")) is not None:
            generation_kwargs["max_tokens"] = max_tokens
        if (gap := _env_float("GENERATION_FRAGMENT_TIMEOUT")) is not None:
            generation_kwargs["fragment_timeout_seconds"] = gap

        service = ServiceConfig()
        if (max_query := _env_int("MAX_QUERY_CHARS")) is not None:
            service.max_query_chars = max_query

        return cls(
            embedding=embedding,
            vector_store=vector_store,
            retrieval=RetrievalConfig(**retrieval_kwargs),
            generation=GenerationConfig(**generation_kwargs),
            service=service,
        )
