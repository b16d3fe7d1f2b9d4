"""Idempotent schema setup for every supported backend.

Each ``setup_*`` coroutine probes for the documents table / collection and,
only when it is missing, creates it together with its similarity index and
the metadata indexes used by filters.  Nothing is ever dropped or altered,
so running the provisioner again is a no-op.

:func:`provision` runs the setups one after another and reports each
backend independently; one failure does not stop the others.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from importlib import resources
from typing import Any

from rag_indexer.config import TABLE_NAME, Settings
from rag_indexer.errors import ConfigurationError, CredentialError, ProvisioningError, RagIndexerError

logger = logging.getLogger(__name__)


def load_sql(name: str, dimensions: int) -> str:
    """Return the packaged SQL script *name* rendered for *dimensions*."""
    script = resources.files("rag_indexer.provisioning").joinpath("sql", name).read_text(encoding="utf-8")
    return script.replace("__EMBEDDING_DIMENSIONS__", str(dimensions))


# ---------------------------------------------------------------------------
# Per-backend setup
# ---------------------------------------------------------------------------


async def setup_postgres(settings: Settings) -> bool:
    """Create the pgvector extension, table and indexes if the table is absent.

    Returns ``True`` when objects were created, ``False`` when already set up.
    """
    import psycopg

    conninfo = settings.postgres_conninfo()
    if not conninfo:
        raise CredentialError("PG_CONNECTION_STRING or POSTGRES_HOST / POSTGRES_USER must be set", backend="postgres")

    try:
        async with await psycopg.AsyncConnection.connect(conninfo, autocommit=True) as conn:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
            cur = await conn.execute(
                "SELECT EXISTS (SELECT FROM information_schema.tables "
                "WHERE table_schema = 'public' AND table_name = %s)",
                (TABLE_NAME,),
            )
            row = await cur.fetchone()
            if row and row[0]:
                logger.info("PostgreSQL is already set up")
                return False

            logger.info("Creating %s table in PostgreSQL...", TABLE_NAME)
            await conn.execute(load_sql("postgres_setup.sql", settings.embedding_dimensions))
    except psycopg.Error as exc:
        raise ProvisioningError(f"PostgreSQL setup failed: {exc}", backend="postgres") from exc
    return True


async def setup_supabase(settings: Settings) -> bool:
    """Create the Supabase table, ``match_documents`` function and indexes.

    The probe is a one-row select; when it fails the script is applied
    through the ``pg_execute`` RPC, which must be installed in the project.
    """
    from postgrest.exceptions import APIError
    from supabase import acreate_client

    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise CredentialError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set", backend="supabase")

    client = await acreate_client(settings.supabase_url, settings.supabase_service_role_key)
    try:
        try:
            await client.table(TABLE_NAME).select("id").limit(1).execute()
        except APIError:
            logger.info("Creating %s table in Supabase...", TABLE_NAME)
        else:
            logger.info("Supabase is already set up")
            return False

        script = load_sql("supabase_setup.sql", settings.embedding_dimensions)
        try:
            await client.rpc("pg_execute", {"query": script}).execute()
        except APIError as exc:
            raise ProvisioningError(f"Supabase setup failed: {exc}", backend="supabase") from exc
        return True
    finally:
        await client.postgrest.aclose()


async def _has_search_index(collection: Any, name: str) -> bool:
    from pymongo.errors import PyMongoError

    try:
        cursor = await collection.list_search_indexes(name)
        return bool(await cursor.to_list())
    except PyMongoError:
        return False


async def setup_mongodb(settings: Settings) -> bool:
    """Create the MongoDB collection, metadata indexes and Atlas vector index.

    The metadata indexes are ensured on every run, so a setup interrupted
    after the collection was created is completed by the next one.
    The vector search index only exists on Atlas; on a plain ``mongod`` its
    creation fails with a warning and the rest of the setup still counts.
    """
    from pymongo import AsyncMongoClient
    from pymongo.errors import PyMongoError
    from pymongo.operations import SearchIndexModel

    if not settings.mongodb_uri:
        raise CredentialError("MONGODB_URI must be set", backend="mongodb")

    client: AsyncMongoClient = AsyncMongoClient(settings.mongodb_uri)
    try:
        db = client[settings.mongodb_db_name]
        created = not await db.list_collection_names(filter={"name": TABLE_NAME})
        if created:
            logger.info("Creating %s collection in MongoDB...", TABLE_NAME)
            collection = await db.create_collection(TABLE_NAME)
        else:
            collection = db[TABLE_NAME]

        # Index creation is idempotent, so an interrupted earlier run is completed here.
        await collection.create_index([("content", "text")])
        await collection.create_index([("metadata.namespace", 1)])
        if await _has_search_index(collection, settings.mongodb_index_name):
            logger.info("MongoDB vector search index %r already exists", settings.mongodb_index_name)
            return created

        index = SearchIndexModel(
            name=settings.mongodb_index_name,
            type="vectorSearch",
            definition={
                "fields": [
                    {
                        "type": "vector",
                        "path": "embedding",
                        "numDimensions": settings.embedding_dimensions,
                        "similarity": "cosine",
                    },
                    {"type": "filter", "path": "metadata.namespace"},
                ]
            },
        )
        try:
            await collection.create_search_index(index)
        except PyMongoError:
            logger.warning(
                "Could not create vector search index %r; this is expected on MongoDB outside Atlas",
                settings.mongodb_index_name,
                exc_info=True,
            )
        else:
            created = True
        return created
    except PyMongoError as exc:
        raise ProvisioningError(f"MongoDB setup failed: {exc}", backend="mongodb") from exc
    finally:
        await client.close()


async def setup_chroma(settings: Settings) -> bool:
    """Create the Chroma collection with cosine distance if it is missing."""
    import chromadb
    import httpx
    from chromadb.errors import ChromaError

    if not settings.chroma_host:
        raise CredentialError("CHROMA_HOST must be set", backend="chroma")

    try:
        client = await chromadb.AsyncHttpClient(host=settings.chroma_host, port=settings.chroma_port)
        existing = {getattr(c, "name", c) for c in await client.list_collections()}
        if TABLE_NAME in existing:
            logger.info("Chroma is already set up")
            return False
        logger.info("Creating %s collection in Chroma...", TABLE_NAME)
        await client.get_or_create_collection(TABLE_NAME, metadata={"hnsw:space": "cosine"})
    except (ChromaError, httpx.HTTPError) as exc:
        raise ProvisioningError(f"Chroma setup failed: {exc}", backend="chroma") from exc
    return True


PROVISIONERS: dict[str, Callable[[Settings], Awaitable[bool]]] = {
    "supabase": setup_supabase,
    "postgres": setup_postgres,
    "mongodb": setup_mongodb,
    "chroma": setup_chroma,
}


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def configured_providers(settings: Settings) -> list[str]:
    """Backends whose secrets are present in *settings*."""
    providers: list[str] = []
    if settings.supabase_url and settings.supabase_service_role_key:
        providers.append("supabase")
    if settings.postgres_conninfo():
        providers.append("postgres")
    if settings.mongodb_uri:
        providers.append("mongodb")
    return providers


async def provision(settings: Settings, providers: Iterable[str] | None = None) -> dict[str, bool]:
    """Set up each backend and return ``{backend: succeeded}``.

    Parameters
    ----------
    settings:
        Connection secrets and embedding dimensions.
    providers:
        Backends to set up; defaults to :func:`configured_providers`.

    Raises
    ------
    ConfigurationError
        No backend is configured, or an unknown backend was requested.
    """
    selected = list(providers) if providers is not None else configured_providers(settings)
    if not selected:
        raise ConfigurationError("No database configuration found. Please configure at least one database.")
    unknown = [p for p in selected if p not in PROVISIONERS]
    if unknown:
        raise ConfigurationError(f"Unsupported provider(s) for provisioning: {', '.join(unknown)}")

    results: dict[str, bool] = {}
    for name in selected:
        logger.info("Setting up %s...", name)
        try:
            created = await PROVISIONERS[name](settings)
        except RagIndexerError as exc:
            logger.error("Error setting up %s: %s", name, exc)
            results[name] = False
        except Exception:
            logger.exception("Unexpected error setting up %s", name)
            results[name] = False
        else:
            logger.info("%s setup completed (%s)", name, "created" if created else "already present")
            results[name] = True
    return results
