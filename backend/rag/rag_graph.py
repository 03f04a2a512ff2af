"""
Retrieval subgraph for LangGraph.

Flow: expand_query → embed_query → search → merge_document → assemble_sources → build_context → END
"""

import logging
from langgraph.graph import StateGraph, END

from .rag_nodes import RetrievalNodes, RetrievalState

logger = logging.getLogger(__name__)


def create_retrieval_graph(nodes: RetrievalNodes):
    """
    Create compiled retrieval subgraph.

    Args:
        nodes: RetrievalNodes bound to embedding service, vector store and config

    Returns:
        Compiled LangGraph; ainvoke({"query": ..., "document": ...}) returns the final state
    """
    workflow = StateGraph(RetrievalState)

    workflow.add_node("expand_query", nodes.expand_query)
    workflow.add_node("embed_query", nodes.embed_query)
    workflow.add_node("search", nodes.search)
    workflow.add_node("merge_document", nodes.merge_document)
    workflow.add_node("assemble_sources", nodes.assemble_sources)
    workflow.add_node("build_context", nodes.build_context)

    # Strictly linear: each step needs the previous step's output
    workflow.set_entry_point("expand_query")
    workflow.add_edge("expand_query", "embed_query")
    workflow.add_edge("embed_query", "search")
    workflow.add_edge("search", "merge_document")
    workflow.add_edge("merge_document", "assemble_sources")
    workflow.add_edge("assemble_sources", "build_context")
    workflow.add_edge("build_context", END)

    compiled_graph = workflow.compile()

    logger.info("Retrieval subgraph compiled successfully")

    return compiled_graph
