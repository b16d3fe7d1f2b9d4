"""In-process vector store for development and tests.

Brute-force cosine scan over a dict keyed by document id.  Rows that do not
match the filter are skipped before any similarity is computed.

Handles built through the factory all share one process-wide dict, so
documents ingested by one run are visible to later retrievals in the same
process.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from langchain_core.documents import Document

from rag_indexer.retrieval.base import VectorStoreBase

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import BaseConfiguration, Settings

# Shared by every handle created through the factory.
_PROCESS_RECORDS: dict[str, tuple[Document, list[float]]] = {}


def clear_memory_store() -> None:
    """Drop every document held by the process-wide memory store."""
    _PROCESS_RECORDS.clear()


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


def matches_filter(metadata: dict[str, Any], filter_kwargs: dict[str, Any]) -> bool:
    """Exact-match conjunction: every filter key must equal the metadata value."""
    return all(key in metadata and metadata[key] == value for key, value in filter_kwargs.items())


class InMemoryVectorStore(VectorStoreBase):
    """Vector store backed by a plain dict.

    Without *records* the handle gets a private dict; :meth:`create` binds
    to the process-wide one.
    """

    name = "memory"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
        records: dict[str, tuple[Document, list[float]]] | None = None,
    ) -> None:
        super().__init__(embeddings, k=k, filter_kwargs=filter_kwargs)
        self.records: dict[str, tuple[Document, list[float]]] = records if records is not None else {}

    @classmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> InMemoryVectorStore:
        return cls(
            embeddings,
            k=configuration.k,
            filter_kwargs=configuration.filter_kwargs,
            records=_PROCESS_RECORDS,
        )

    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        for doc, vector in zip(docs, vectors):
            self.records[doc.id] = (doc, list(vector))

    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        scored = [
            (doc, (1.0 + _cosine(vector, stored)) / 2.0)
            for doc, stored in self.records.values()
            if matches_filter(doc.metadata, self.filter_kwargs)
        ]
        scored.sort(key=lambda hit: hit[1], reverse=True)
        return scored[: self.k]

    async def health_check(self) -> bool:
        return True

    async def delete(self, ids: list[str]) -> None:
        for doc_id in ids:
            self.records.pop(doc_id, None)
