"""
RAG (Retrieval-Augmented Generation) module for grounded knowledge answers.

This module implements the retrieval and answer pipeline using:
- ChromaDB for vector search over the pre-ingested corpus
- OpenAI embeddings (text-embedding-3-small)
- LangGraph for retrieval orchestration
- LangChain ChatOpenAI for answer generation
- Server-Sent Events for streamed answers

Retrieval ALWAYS completes, and its sources are sent, BEFORE generation starts.
"""

__version__ = "1.0.0"
