"""Retriever factory — picks and builds the adapter named by the configuration.

Adapters are imported lazily so that a deployment only needs the client
library of the backend it actually uses.
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any

from rag_indexer.config import BaseConfiguration, ensure_configuration
from rag_indexer.errors import ConfigurationError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.runnables import RunnableConfig

    from rag_indexer.config import Settings
    from rag_indexer.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

# provider name -> "module:Class"
ADAPTERS: dict[str, str] = {
    "postgres": "rag_indexer.retrieval.postgres_store:PostgresVectorStore",
    "supabase": "rag_indexer.retrieval.supabase_store:SupabaseVectorStore",
    "mongodb": "rag_indexer.retrieval.mongodb_store:MongoDBVectorStore",
    "chroma": "rag_indexer.retrieval.chroma_store:ChromaVectorStore",
    "memory": "rag_indexer.retrieval.memory_store:InMemoryVectorStore",
}


def adapter_class(provider: str | None) -> type[VectorStoreBase]:
    """Return the adapter class registered for *provider*."""
    if not provider:
        raise ConfigurationError("retriever_provider is not set")
    try:
        target = ADAPTERS[provider]
    except KeyError:
        raise ConfigurationError(f"Unsupported retriever provider: {provider}") from None
    module_name, _, class_name = target.partition(":")
    return getattr(importlib.import_module(module_name), class_name)


async def make_retriever(
    configuration: BaseConfiguration | RunnableConfig | dict[str, Any],
    settings: Settings,
    embeddings: Embeddings | None = None,
) -> VectorStoreBase:
    """Build a retriever handle for the configured provider.

    Parameters
    ----------
    configuration:
        A validated :class:`~rag_indexer.config.BaseConfiguration` or a
        LangGraph ``RunnableConfig`` to resolve one from.
    settings:
        Connection secrets.
    embeddings:
        Embedding model; defaults to the one described by *settings*.

    Raises
    ------
    ConfigurationError
        Provider unset or unknown.  No connection is attempted.
    CredentialError
        The adapter's required secrets are missing.  No connection is attempted.
    """
    if not isinstance(configuration, BaseConfiguration):
        configuration = ensure_configuration(configuration)

    cls = adapter_class(configuration.retriever_provider)
    if embeddings is None:
        from rag_indexer.ingestion.embedder import get_embedding_function

        embeddings = get_embedding_function(settings)

    logger.info("Creating %s retriever (k=%d)", cls.name, configuration.k)
    return await cls.create(configuration, settings, embeddings)
