"""
Diagnose retrieval quality for one query.

Reports:
- whether query expansion fired, and what it appended
- for each threshold, the surviving chunks with their similarity spread
  and source-type mix
- a with/without expansion comparison at the serving threshold: chunk
  counts, average similarity, and how many chunks both searches share

Use it to tune RAG_SIMILARITY_THRESHOLD, RAG_FALLBACK_THRESHOLD and the
expansion table.

Usage (from backend/):
    python -m scripts.diagnose_retrieval "what notice ends a month to month tenancy"
    python -m scripts.diagnose_retrieval "esa deposit" --thresholds 0.2 0.3 0.5 --limit 10
"""

import argparse
import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rag.config import RAGConfig
from rag.context_builder import similarity_summary
from rag.embeddings import IEmbeddingService, OpenAIEmbeddingService
from rag.expansion import expand_query
from rag.models import RetrievedChunk
from rag.vector_store import ChromaVectorStore, IVectorStore

DEFAULT_THRESHOLDS = [0.2, 0.3, 0.4, 0.5, 0.7]
TOP_CHUNKS_SHOWN = 3


def average_similarity(chunks: List[RetrievedChunk]) -> Optional[float]:
    if not chunks:
        return None
    return sum(c.similarity for c in chunks) / len(chunks)


def source_type_counts(chunks: List[RetrievedChunk]) -> Dict[str, int]:
    return dict(Counter(c.chunk.source_type for c in chunks))


@dataclass
class ThresholdReport:
    """Chunks surviving one threshold."""

    threshold: float
    chunks: List[RetrievedChunk]

    @property
    def summary(self) -> Optional[str]:
        return similarity_summary(self.chunks)

    @property
    def source_types(self) -> Dict[str, int]:
        return source_type_counts(self.chunks)


@dataclass
class ExpansionComparison:
    """Search results for the raw query vs. the expanded query at one threshold."""

    threshold: float
    original: List[RetrievedChunk]
    expanded: List[RetrievedChunk]

    @property
    def overlap(self) -> int:
        original_ids = {c.chunk.id for c in self.original}
        return len(original_ids & {c.chunk.id for c in self.expanded})

    @property
    def largest(self) -> int:
        return max(len(self.original), len(self.expanded))


@dataclass
class DiagnosticReport:
    query: str
    expanded_query: str
    thresholds: List[ThresholdReport] = field(default_factory=list)
    comparison: Optional[ExpansionComparison] = None

    @property
    def was_expanded(self) -> bool:
        return self.expanded_query != self.query


async def run_diagnostics(
    query: str,
    embedding_service: IEmbeddingService,
    vector_store: IVectorStore,
    thresholds: List[float],
    limit: int,
    serving_threshold: float = 0.3,
    serving_limit: int = 5
) -> DiagnosticReport:
    """
    Sweep thresholds with the expanded query and compare against the raw query.

    The comparison only runs when expansion changed the query.
    """
    expanded = expand_query(query)
    report = DiagnosticReport(query=query, expanded_query=expanded)

    expanded_embedding = await embedding_service.embed_query(expanded)

    for threshold in sorted(thresholds, reverse=True):
        chunks = await vector_store.search(expanded_embedding, threshold=threshold, limit=limit)
        report.thresholds.append(ThresholdReport(threshold=threshold, chunks=chunks))

    if report.was_expanded:
        original_embedding = await embedding_service.embed_query(query)
        report.comparison = ExpansionComparison(
            threshold=serving_threshold,
            original=await vector_store.search(original_embedding, threshold=serving_threshold, limit=serving_limit),
            expanded=await vector_store.search(expanded_embedding, threshold=serving_threshold, limit=serving_limit),
        )

    return report


def format_chunks(chunks: List[RetrievedChunk]) -> str:
    if not chunks:
        return "    (no chunks)"
    lines = []
    for i, retrieved in enumerate(chunks, 1):
        chunk = retrieved.chunk
        preview = chunk.content.replace("\n", " ")
        preview = preview if len(preview) <= 70 else f"{preview[:67]}..."
        section = chunk.source_section or "none"
        lines.append(
            f"    {i}. {retrieved.similarity * 100:6.2f}%  [{chunk.source_type}] "
            f"{chunk.source_title} §{section}\n       \"{preview}\""
        )
    return "\n".join(lines)


def _format_average(chunks: List[RetrievedChunk]) -> str:
    avg = average_similarity(chunks)
    return "n/a" if avg is None else f"{avg * 100:.2f}%"


def format_report(report: DiagnosticReport) -> str:
    lines = ["=" * 70, f"Query:    {report.query}"]
    if report.was_expanded:
        lines.append(f"Expanded: {report.expanded_query}")
    else:
        lines.append("Expanded: (no expansion)")
    lines.append("=" * 70)

    for entry in report.thresholds:
        lines.append(f"\nThreshold {entry.threshold:.2f}: {len(entry.chunks)} chunks")
        if not entry.chunks:
            continue
        lines.append(f"  Similarity: {entry.summary}")
        types = ", ".join(f"{name}={count}" for name, count in entry.source_types.items())
        lines.append(f"  Source types: {types}")
        lines.append(format_chunks(entry.chunks[:TOP_CHUNKS_SHOWN]))

    comparison = report.comparison
    if comparison is not None:
        lines.append("\n" + "=" * 70)
        lines.append(f"Expansion comparison (threshold {comparison.threshold:.2f})")
        lines.append("=" * 70)
        lines.append(
            f"  Without expansion: {len(comparison.original)} chunks, "
            f"avg similarity {_format_average(comparison.original)}"
        )
        lines.append(
            f"  With expansion:    {len(comparison.expanded)} chunks, "
            f"avg similarity {_format_average(comparison.expanded)}"
        )
        lines.append(f"  Overlap: {comparison.overlap}/{comparison.largest} chunks are the same")

    return "\n".join(lines)


async def diagnose(query: str, thresholds: List[float], limit: int) -> None:
    config = RAGConfig.from_env()
    report = await run_diagnostics(
        query,
        embedding_service=OpenAIEmbeddingService(config.embedding),
        vector_store=ChromaVectorStore(config.vector_store),
        thresholds=thresholds,
        limit=limit,
        serving_threshold=config.retrieval.similarity_threshold,
        serving_limit=config.retrieval.top_k,
    )
    print(format_report(report))


def main() -> None:
    parser = argparse.ArgumentParser(description="Sweep similarity thresholds for a query")
    parser.add_argument("query", help="Question to diagnose")
    parser.add_argument("--thresholds", type=float, nargs="+", default=DEFAULT_THRESHOLDS)
    parser.add_argument("--limit", type=int, default=10)
    args = parser.parse_args()

    asyncio.run(diagnose(args.query, args.thresholds, args.limit))


if __name__ == "__main__":
    main()
