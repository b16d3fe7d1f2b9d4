"""Supabase implementation of the vector-store abstraction.

Writes go straight to the ``documents`` table through PostgREST; reads go
through the ``match_documents`` SQL function installed by the provisioner,
which applies ``metadata @> filter`` before ordering by cosine distance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from langchain_core.documents import Document
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from rag_indexer.config import QUERY_NAME, TABLE_NAME
from rag_indexer.errors import CredentialError, backend_errors
from rag_indexer.retrieval.base import VectorStoreBase, clamp_score

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import BaseConfiguration, Settings

logger = logging.getLogger(__name__)

_ERRORS = (APIError, httpx.HTTPError)


class SupabaseVectorStore(VectorStoreBase):
    """Supabase-backed store.

    Parameters
    ----------
    client:
        An async Supabase client authenticated with the service-role key.
    table_name:
        Table holding the documents.
    query_name:
        Name of the similarity-search SQL function.
    """

    name = "supabase"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        client: AsyncClient,
        table_name: str = TABLE_NAME,
        query_name: str = QUERY_NAME,
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(embeddings, k=k, filter_kwargs=filter_kwargs)
        self._client = client
        self.table_name = table_name
        self.query_name = query_name

    @classmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> SupabaseVectorStore:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise CredentialError(
                "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY environment variables are not defined",
                backend=cls.name,
            )
        client = await acreate_client(settings.supabase_url, settings.supabase_service_role_key)
        return cls(
            embeddings,
            client=client,
            k=configuration.k,
            filter_kwargs=configuration.filter_kwargs,
        )

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        rows = [
            {
                "id": doc.id,
                "content": doc.page_content,
                "metadata": doc.metadata,
                "embedding": list(vector),
            }
            for doc, vector in zip(docs, vectors)
        ]
        with backend_errors(self.name, "upsert", *_ERRORS):
            await self._client.table(self.table_name).upsert(rows, on_conflict="id").execute()

    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        params = {
            "query_embedding": list(vector),
            "match_count": self.k,
            "filter": self.filter_kwargs,
        }
        with backend_errors(self.name, "similarity search", *_ERRORS):
            response = await self._client.rpc(self.query_name, params).execute()

        hits: list[tuple[Document, float]] = []
        for row in response.data or []:
            # match_documents returns cosine similarity in [-1, 1].
            similarity = float(row.get("similarity", 0.0))
            doc = Document(
                id=str(row["id"]),
                page_content=row.get("content") or "",
                metadata=row.get("metadata") or {},
            )
            hits.append((doc, clamp_score((1.0 + similarity) / 2.0)))
        return hits

    async def health_check(self) -> bool:
        try:
            await self._client.table(self.table_name).select("id").limit(1).execute()
            return True
        except _ERRORS:
            logger.warning("Supabase health-check failed", exc_info=True)
            return False

    async def delete(self, ids: list[str]) -> None:
        with backend_errors(self.name, "delete", *_ERRORS):
            await self._client.table(self.table_name).delete().in_("id", ids).execute()

    async def aclose(self) -> None:
        await self._client.postgrest.aclose()
