"""Ingestion graph — load documents, then hand them to a retriever.

Graph topology::

    START ──► ingest_docs ──► END

``ingest_docs`` runs two stages in order:

1. **Load** the pending documents from the state, or the sample corpus when
   ``use_sample_docs`` is set, and normalise them through
   :func:`~rag_indexer.ingestion.state.reduce_docs`.
2. **Persist** them through the retriever named by the configuration, then
   clear the pending list.

There is no retry.  Re-invoking with the same input is safe because
backends upsert by identity.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.documents import Document
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from rag_indexer.config import Settings, ensure_configuration, ensure_index_configuration
from rag_indexer.errors import InputError
from rag_indexer.ingestion.loader import load_serialized_docs
from rag_indexer.ingestion.state import CLEAR_DOCS, IndexState, reduce_docs
from rag_indexer.retrieval.factory import make_retriever

logger = logging.getLogger(__name__)


def _runtime(config: RunnableConfig | None) -> tuple[Settings, Any]:
    """Pull the boundary-resolved settings and optional embeddings out of *config*."""
    configurable = (config or {}).get("configurable") or {}
    settings = configurable.get("settings") or Settings()
    return settings, configurable.get("embeddings")


async def ingest_docs(state: IndexState, config: RunnableConfig) -> dict[str, Any]:
    """Load, normalise and persist documents; clear ``docs`` on success."""
    configuration = ensure_index_configuration(config)
    settings, embeddings = _runtime(config)

    docs: list[Document] = list(state.get("docs") or [])
    if docs:
        docs = reduce_docs([], docs)
    elif configuration.use_sample_docs:
        logger.info("Loading sample documents from %s", configuration.docs_file)
        docs = reduce_docs([], await load_serialized_docs(configuration.docs_file))
    else:
        raise InputError("No documents to index.")

    if not docs:
        raise InputError("No documents to index.")

    async with await make_retriever(configuration, settings, embeddings) as retriever:
        ids = await retriever.add_documents(docs)

    logger.info("Indexed %d document(s) with %s", len(ids), configuration.retriever_provider)
    return {"docs": CLEAR_DOCS}


def build_graph() -> Any:
    """Construct and return the compiled ingestion graph."""
    workflow = StateGraph(IndexState)
    workflow.add_node("ingest_docs", ingest_docs)
    workflow.add_edge(START, "ingest_docs")
    workflow.add_edge("ingest_docs", END)
    return workflow.compile().with_config({"run_name": "IngestionGraph"})


graph = build_graph()


def _with_runtime(
    config: RunnableConfig | dict[str, Any],
    settings: Settings | None,
    embeddings: Any,
) -> RunnableConfig:
    configurable = dict(config.get("configurable") or {})
    configurable["settings"] = settings or configurable.get("settings") or Settings()
    if embeddings is not None:
        configurable["embeddings"] = embeddings
    return {**config, "configurable": configurable}  # type: ignore[typeddict-item]


async def ingest(
    state: IndexState | dict[str, Any],
    config: RunnableConfig | dict[str, Any],
    *,
    settings: Settings | None = None,
    embeddings: Any = None,
) -> dict[str, Any]:
    """Run the ingestion graph once and return the updated state.

    Usage::

        state = await ingest(
            {"docs": [{"id": "doc-1", "page_content": "..."}]},
            {"configurable": {"retriever_provider": "postgres"}},
        )
        assert state["docs"] == []

    ``Settings`` is resolved here, once, unless supplied.  Errors from either
    stage propagate unchanged.
    """
    return await graph.ainvoke(state, _with_runtime(config, settings, embeddings))


async def retrieve(
    query: str,
    config: RunnableConfig | dict[str, Any],
    *,
    settings: Settings | None = None,
    embeddings: Any = None,
) -> list[tuple[Document, float]]:
    """Query the configured backend with the configured ``k`` and filter."""
    config = _with_runtime(config, settings, embeddings)
    configuration = ensure_configuration(config)
    settings, embeddings = _runtime(config)
    async with await make_retriever(configuration, settings, embeddings) as retriever:
        return await retriever.retrieve(query)
