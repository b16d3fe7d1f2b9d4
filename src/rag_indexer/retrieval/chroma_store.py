"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import chromadb
import httpx
from chromadb.errors import ChromaError
from langchain_core.documents import Document

from rag_indexer.config import TABLE_NAME
from rag_indexer.errors import CredentialError, backend_errors
from rag_indexer.retrieval.base import VectorStoreBase, cosine_distance_to_score

if TYPE_CHECKING:
    from chromadb.api.models.AsyncCollection import AsyncCollection
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import BaseConfiguration, Settings

logger = logging.getLogger(__name__)

_ERRORS = (ChromaError, httpx.HTTPError)


def build_chroma_where(filter_kwargs: dict[str, Any]) -> dict[str, Any] | None:
    """Convert an exact-match mapping to Chroma ``where`` syntax."""
    if not filter_kwargs:
        return None
    clauses = [{key: {"$eq": value}} for key, value in filter_kwargs.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any] | None:
    """Keep only the scalar values Chroma can store; ``None`` when nothing is left."""
    flat = {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}
    return flat or None


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    client:
        Async Chroma HTTP client.
    collection:
        Collection created with cosine distance.
    """

    name = "chroma"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        client: Any,
        collection: AsyncCollection,
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(embeddings, k=k, filter_kwargs=filter_kwargs)
        self._client = client
        self._collection = collection

    @classmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> ChromaVectorStore:
        if not settings.chroma_host:
            raise CredentialError("CHROMA_HOST environment variable is not defined", backend=cls.name)
        with backend_errors(cls.name, "connect", *_ERRORS):
            client = await chromadb.AsyncHttpClient(host=settings.chroma_host, port=settings.chroma_port)
            collection = await client.get_or_create_collection(
                TABLE_NAME,
                metadata={"hnsw:space": "cosine"},
            )
        return cls(
            embeddings,
            client=client,
            collection=collection,
            k=configuration.k,
            filter_kwargs=configuration.filter_kwargs,
        )

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        with backend_errors(self.name, "upsert", *_ERRORS):
            await self._collection.upsert(
                ids=[doc.id for doc in docs],
                embeddings=[list(v) for v in vectors],
                documents=[doc.page_content for doc in docs],
                metadatas=[flatten_metadata(doc.metadata) for doc in docs],
            )

    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        with backend_errors(self.name, "query", *_ERRORS):
            results = await self._collection.query(
                query_embeddings=[list(vector)],
                n_results=self.k,
                where=build_chroma_where(self.filter_kwargs),
                include=["documents", "metadatas", "distances"],
            )

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[tuple[Document, float]] = []
        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            doc = Document(id=doc_id, page_content=content or "", metadata=dict(meta or {}))
            hits.append((doc, cosine_distance_to_score(dist)))
        return hits

    async def health_check(self) -> bool:
        try:
            await self._client.heartbeat()
            return True
        except _ERRORS:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    async def delete(self, ids: list[str]) -> None:
        with backend_errors(self.name, "delete", *_ERRORS):
            await self._collection.delete(ids=ids)
