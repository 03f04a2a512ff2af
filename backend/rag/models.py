"""
RAG domain models for knowledge chunks, retrieval results, and citations.

These models represent the core entities in the retrieval pipeline:
- KnowledgeChunk: Pre-embedded corpus passage (read-only)
- RetrievedChunk: Chunk with a query-time similarity score
- Source: De-duplicated, numbered citation shown to the user
- RetrievalOutcome: Everything the prompt builder and the transport need
"""

from enum import Enum
from typing import Dict, Any, Optional, List, Tuple
from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Kind of corpus document a chunk was cut from."""

    STATUTE = "ors_90"
    VIDEO_TRANSCRIPT = "loom_video"
    POLICY_DOCUMENT = "policy_doc"
    USER_DOCUMENT = "user_document"


# Icons rendered by the citation UI
SOURCE_ICONS: Dict[str, str] = {
    SourceType.STATUTE.value: "⚖️",
    SourceType.VIDEO_TRANSCRIPT.value: "🎬",
    SourceType.POLICY_DOCUMENT.value: "📄",
    SourceType.USER_DOCUMENT.value: "📎",
}
DEFAULT_SOURCE_ICON = "📄"


def icon_for(source_type: str) -> str:
    """Return the display icon for a source type."""
    return SOURCE_ICONS.get(source_type, DEFAULT_SOURCE_ICON)


class KnowledgeChunk(BaseModel):
    """A stored, pre-embedded passage of corpus text."""

    id: str
    content: str
    source_type: str
    source_title: str
    source_url: Optional[str] = None
    source_section: Optional[str] = None

    model_config = {"frozen": True}


class RetrievedChunk(BaseModel):
    """A knowledge chunk with the similarity computed for the current query."""

    chunk: KnowledgeChunk
    similarity: float  # Clamped to 0-1, higher is better

    @property
    def citation_key(self) -> Tuple[str, str, Optional[str]]:
        """
        Chunks sharing this key collapse into one Source.

        The source type is part of the key so an attached document never
        merges with a corpus document that happens to share its title.
        """
        return (self.chunk.source_type, self.chunk.source_title, self.chunk.source_section)


class SupplementaryDocument(BaseModel):
    """Document attached by the caller to a single question."""

    content: str
    name: str = "Uploaded Document"


class Source(BaseModel):
    """User-facing citation unit with its 1-based ordinal."""

    id: str
    ordinal: int
    title: str
    type: str
    icon: str
    section: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and stream frames."""
        return self.model_dump()


class RetrievalOutcome(BaseModel):
    """Result of one retrieval run."""

    sources: List[Source] = Field(default_factory=list)
    grounding_context: str = ""
    expanded_query: str = ""
    threshold_used: float = 0.0
    candidate_count: int = 0
    latency_ms: float = 0.0
    document_name: Optional[str] = None

    @property
    def has_knowledge(self) -> bool:
        return len(self.sources) > 0
