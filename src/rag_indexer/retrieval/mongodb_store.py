"""MongoDB Atlas implementation of the vector-store abstraction.

Documents are stored with the identity as ``_id``.  Similarity search uses
the ``$vectorSearch`` aggregation stage; the metadata filter is passed as
its ``filter`` option, which Atlas applies before scoring.  Every filtered
path must be declared as a ``filter`` field in the search index (the
provisioner declares ``metadata.namespace``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from langchain_core.documents import Document
from pymongo import AsyncMongoClient, ReplaceOne
from pymongo.errors import PyMongoError

from rag_indexer.config import TABLE_NAME
from rag_indexer.errors import CredentialError, backend_errors
from rag_indexer.retrieval.base import VectorStoreBase, clamp_score

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from pymongo.asynchronous.collection import AsyncCollection

    from rag_indexer.config import BaseConfiguration, Settings

logger = logging.getLogger(__name__)

# Candidates examined per requested result by the ANN search.
NUM_CANDIDATES_FACTOR = 10


def build_mongo_filter(filter_kwargs: dict[str, Any]) -> dict[str, Any] | None:
    """Convert an exact-match mapping to ``$vectorSearch`` filter syntax."""
    if not filter_kwargs:
        return None
    clauses = [{f"metadata.{key}": {"$eq": value}} for key, value in filter_kwargs.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class MongoDBVectorStore(VectorStoreBase):
    """MongoDB Atlas Vector Search store.

    Parameters
    ----------
    client:
        Async client; closed in :meth:`aclose`.
    collection:
        Collection holding the documents.
    index_name:
        Name of the Atlas vector search index.
    """

    name = "mongodb"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        client: AsyncMongoClient,
        collection: AsyncCollection,
        index_name: str = "vector_index",
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(embeddings, k=k, filter_kwargs=filter_kwargs)
        self._client = client
        self._collection = collection
        self.index_name = index_name

    @classmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> MongoDBVectorStore:
        if not settings.mongodb_uri:
            raise CredentialError("MONGODB_URI environment variable is not defined", backend=cls.name)
        client: AsyncMongoClient = AsyncMongoClient(settings.mongodb_uri)
        collection = client[settings.mongodb_db_name][TABLE_NAME]
        return cls(
            embeddings,
            client=client,
            collection=collection,
            index_name=settings.mongodb_index_name,
            k=configuration.k,
            filter_kwargs=configuration.filter_kwargs,
        )

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        ops = [
            ReplaceOne(
                {"_id": doc.id},
                {"content": doc.page_content, "metadata": doc.metadata, "embedding": list(vector)},
                upsert=True,
            )
            for doc, vector in zip(docs, vectors)
        ]
        with backend_errors(self.name, "upsert", PyMongoError):
            await self._collection.bulk_write(ops, ordered=True)

    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        stage: dict[str, Any] = {
            "index": self.index_name,
            "path": "embedding",
            "queryVector": list(vector),
            "numCandidates": self.k * NUM_CANDIDATES_FACTOR,
            "limit": self.k,
        }
        mongo_filter = build_mongo_filter(self.filter_kwargs)
        if mongo_filter is not None:
            stage["filter"] = mongo_filter
        pipeline = [
            {"$vectorSearch": stage},
            {"$project": {"content": 1, "metadata": 1, "score": {"$meta": "vectorSearchScore"}}},
        ]

        hits: list[tuple[Document, float]] = []
        with backend_errors(self.name, "vector search", PyMongoError):
            cursor = await self._collection.aggregate(pipeline)
            async for row in cursor:
                doc = Document(
                    id=str(row["_id"]),
                    page_content=row.get("content") or "",
                    metadata=row.get("metadata") or {},
                )
                # vectorSearchScore for cosine is already (1 + cos) / 2.
                hits.append((doc, clamp_score(row.get("score", 0.0))))
        return hits

    async def health_check(self) -> bool:
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            logger.warning("MongoDB health-check failed", exc_info=True)
            return False

    async def delete(self, ids: list[str]) -> None:
        with backend_errors(self.name, "delete", PyMongoError):
            await self._collection.delete_many({"_id": {"$in": ids}})

    async def aclose(self) -> None:
        await self._client.close()
