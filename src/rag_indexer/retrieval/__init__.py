"""
Retrieval — one retriever contract over several vector-store backends.

Public surface
--------------
- :class:`VectorStoreBase` — abstract retriever handle (``add_documents`` / ``retrieve``).
- :func:`make_retriever` — build the handle named by the configuration.
- :class:`InMemoryVectorStore` — process-local backend for development and tests.
- ``PostgresVectorStore``, ``SupabaseVectorStore``, ``MongoDBVectorStore``,
  ``ChromaVectorStore`` — imported lazily so that only the client library of
  the backend in use has to be installed.
"""

from rag_indexer.retrieval.base import VectorStoreBase
from rag_indexer.retrieval.factory import ADAPTERS, make_retriever
from rag_indexer.retrieval.memory_store import InMemoryVectorStore

__all__ = [
    "ADAPTERS",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "MongoDBVectorStore",
    "PostgresVectorStore",
    "SupabaseVectorStore",
    "VectorStoreBase",
    "make_retriever",
]

_LAZY = {
    "PostgresVectorStore": "rag_indexer.retrieval.postgres_store",
    "SupabaseVectorStore": "rag_indexer.retrieval.supabase_store",
    "MongoDBVectorStore": "rag_indexer.retrieval.mongodb_store",
    "ChromaVectorStore": "rag_indexer.retrieval.chroma_store",
}


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backend adapters to avoid pulling in their clients at import time."""
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
