"""Postgres + pgvector implementation of the vector-store abstraction.

Documents live in one table (``id text primary key, content text,
metadata jsonb, embedding vector(n)``) created by the provisioner.  The
metadata filter is pushed down as JSONB containment (``metadata @> filter``).

With the ivfflat index in play, Postgres applies that filter to the rows the
index scan yields, so a narrow filter could leave fewer than ``k`` matches.
Each search therefore sets ``ivfflat.probes`` to the number of lists for its
transaction, which makes the scan visit every list and the result exact.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import psycopg
from langchain_core.documents import Document
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from rag_indexer.config import TABLE_NAME
from rag_indexer.errors import BackendError, CredentialError, backend_errors
from rag_indexer.retrieval.base import VectorStoreBase, cosine_distance_to_score

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import BaseConfiguration, Settings

logger = logging.getLogger(__name__)

_UPSERT = sql.SQL(
    "INSERT INTO {table} (id, content, metadata, embedding) "
    "VALUES (%s, %s, %s, %s::vector) "
    "ON CONFLICT (id) DO UPDATE SET "
    "content = EXCLUDED.content, metadata = EXCLUDED.metadata, embedding = EXCLUDED.embedding"
)

_SEARCH = sql.SQL(
    "SELECT id, content, metadata, embedding <=> %(embedding)s::vector AS distance "
    "FROM {table} "
    "WHERE metadata @> %(filter)s "
    "ORDER BY distance "
    "LIMIT %(k)s"
)

_DELETE = sql.SQL("DELETE FROM {table} WHERE id = ANY(%s)")

# Must match ``lists`` in sql/postgres_setup.sql.
IVFFLAT_LISTS = 100

SET_PROBES = sql.SQL("SET LOCAL ivfflat.probes = {}").format(sql.Literal(IVFFLAT_LISTS))


def to_vector_literal(vector: list[float]) -> str:
    """Render *vector* in pgvector's text input format, e.g. ``[0.1,0.2]``."""
    return "[" + ",".join(str(float(x)) for x in vector) + "]"


class PostgresVectorStore(VectorStoreBase):
    """pgvector-backed store using a ``psycopg_pool.AsyncConnectionPool``.

    Parameters
    ----------
    pool:
        An open async connection pool.  The store closes it in :meth:`aclose`.
    table_name:
        Table holding the documents.
    """

    name = "postgres"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        pool: AsyncConnectionPool,
        table_name: str = TABLE_NAME,
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(embeddings, k=k, filter_kwargs=filter_kwargs)
        self._pool = pool
        self._table = sql.Identifier(table_name)

    @classmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> PostgresVectorStore:
        conninfo = settings.postgres_conninfo()
        if not conninfo:
            raise CredentialError(
                "PG_CONNECTION_STRING (or POSTGRES_HOST / POSTGRES_USER) environment variable is not defined",
                backend=cls.name,
            )

        pool = AsyncConnectionPool(conninfo, open=False)
        try:
            with backend_errors(cls.name, "connect", psycopg.Error):
                await pool.open(wait=True)
        except BackendError:
            await pool.close()
            raise
        return cls(
            embeddings,
            pool=pool,
            k=configuration.k,
            filter_kwargs=configuration.filter_kwargs,
        )

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        params = [
            (doc.id, doc.page_content, Jsonb(doc.metadata), to_vector_literal(vector))
            for doc, vector in zip(docs, vectors)
        ]
        with backend_errors(self.name, "upsert", psycopg.Error):
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.executemany(_UPSERT.format(table=self._table), params)

    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        params = {
            "embedding": to_vector_literal(vector),
            "filter": Jsonb(self.filter_kwargs),
            "k": self.k,
        }
        with backend_errors(self.name, "similarity search", psycopg.Error):
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(SET_PROBES)
                    await cur.execute(_SEARCH.format(table=self._table), params)
                    rows = await cur.fetchall()

        return [
            (
                Document(id=str(doc_id), page_content=content or "", metadata=metadata or {}),
                cosine_distance_to_score(distance),
            )
            for doc_id, content, metadata, distance in rows
        ]

    async def health_check(self) -> bool:
        try:
            async with self._pool.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except psycopg.Error:
            logger.warning("Postgres health-check failed", exc_info=True)
            return False

    async def delete(self, ids: list[str]) -> None:
        with backend_errors(self.name, "delete", psycopg.Error):
            async with self._pool.connection() as conn:
                await conn.execute(_DELETE.format(table=self._table), (ids,))

    async def aclose(self) -> None:
        await self._pool.close()
