"""
Citation assembly and grounding context construction.

Turns the ranked candidate list into numbered Sources and the prompt-ready
context block. Everything here is pure so ordinals are reproducible for
the same candidates.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import (
    KnowledgeChunk,
    RetrievedChunk,
    Source,
    SourceType,
    SupplementaryDocument,
    icon_for,
)

logger = logging.getLogger(__name__)

NO_RELEVANT_CONTEXT = "No relevant information found in the knowledge base."

# Similarity given to a caller-attached document so it always ranks first
SUPPLEMENTARY_SIMILARITY = 1.0

TRUNCATION_SUFFIX = "..."


@dataclass
class _SourceGroup:
    """Candidates collapsed under one (title, section) key."""

    first: KnowledgeChunk
    similarity: float
    contents: List[str] = field(default_factory=list)
    position: int = 0  # First-seen position, keeps the sort stable


def document_chunk(document: SupplementaryDocument) -> RetrievedChunk:
    """Synthesize the ad-hoc chunk for a caller-attached document."""
    digest = hashlib.sha256(f"{document.name}\n{document.content}".encode("utf-8")).hexdigest()[:16]
    chunk = KnowledgeChunk(
        id=f"user-document-{digest}",
        content=document.content,
        source_type=SourceType.USER_DOCUMENT.value,
        source_title=document.name,
    )
    return RetrievedChunk(chunk=chunk, similarity=SUPPLEMENTARY_SIMILARITY)


def assemble_sources(candidates: List[RetrievedChunk]) -> Tuple[List[Source], List[str]]:
    """
    Deduplicate candidates into Sources and assign ordinals 1..N.

    Chunks sharing (source_type, source_title, source_section) collapse into one Source
    that keeps the higher similarity and the concatenated content. A
    user document is always ordinal 1; the rest follow by descending
    similarity.

    Returns:
        Tuple of (sources, contents) where contents[i] grounds sources[i]
    """
    groups: dict = {}
    for position, candidate in enumerate(candidates):
        key = candidate.citation_key
        group = groups.get(key)
        if group is None:
            groups[key] = _SourceGroup(
                first=candidate.chunk,
                similarity=candidate.similarity,
                contents=[candidate.chunk.content],
                position=position,
            )
            continue
        group.similarity = max(group.similarity, candidate.similarity)
        if candidate.chunk.content not in group.contents:
            group.contents.append(candidate.chunk.content)

    ordered = sorted(
        groups.values(),
        key=lambda g: (
            g.first.source_type != SourceType.USER_DOCUMENT.value,
            -g.similarity,
            g.position,
        ),
    )

    sources = []
    contents = []
    for ordinal, group in enumerate(ordered, 1):
        chunk = group.first
        sources.append(
            Source(
                id=chunk.id,
                ordinal=ordinal,
                title=chunk.source_title,
                type=chunk.source_type,
                icon=icon_for(chunk.source_type),
                section=chunk.source_section,
                url=chunk.source_url,
            )
        )
        contents.append("\n\n".join(group.contents))

    if len(candidates) != len(sources):
        logger.info(f"Collapsed {len(candidates)} candidates into {len(sources)} sources")

    return sources, contents


def truncate(text: str, budget: int) -> str:
    """Cut text to the character budget, marking the cut."""
    if len(text) <= budget:
        return text
    return text[:budget].rstrip() + TRUNCATION_SUFFIX


def citation_header(source: Source) -> str:
    header = f"[{source.ordinal}] {source.title}"
    if source.section:
        header += f" - {source.section}"
    return header


def build_grounding_context(sources: List[Source], contents: List[str], max_chunk_chars: int) -> str:
    """Number each source's content for the prompt, or return the no-match marker."""
    if not sources:
        return NO_RELEVANT_CONTEXT

    parts = [
        f"{citation_header(source)}:\n{truncate(content, max_chunk_chars)}"
        for source, content in zip(sources, contents)
    ]
    return "\n\n".join(parts)


def similarity_summary(chunks: List[RetrievedChunk]) -> Optional[str]:
    """Min/avg/max similarity line for retrieval logs."""
    if not chunks:
        return None
    scores = [c.similarity for c in chunks]
    avg = sum(scores) / len(scores)
    sections = ", ".join(c.chunk.source_section or "none" for c in chunks)
    return (
        f"min={min(scores) * 100:.2f}%, avg={avg * 100:.2f}%, max={max(scores) * 100:.2f}% "
        f"(sections: {sections})"
    )
