"""
Ingestion — a LangGraph graph that normalises documents and upserts them
into the configured vector store.

Public API
----------
- :func:`ingest` — run the graph once.
- :func:`retrieve` — query the configured backend.
- :func:`reduce_docs` / :data:`CLEAR_DOCS` — the document reducer and its reset signal.
"""

from rag_indexer.ingestion.graph import build_graph, ingest, retrieve
from rag_indexer.ingestion.state import CLEAR_DOCS, IndexState, reduce_docs

__all__ = ["CLEAR_DOCS", "IndexState", "build_graph", "ingest", "reduce_docs", "retrieve"]
