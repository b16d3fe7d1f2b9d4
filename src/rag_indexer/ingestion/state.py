"""Ingestion state and the document reducer.

The reducer is attached to ``IndexState.docs`` so LangGraph merges every
node update through it.  It is also called directly by the load stage to
normalise incoming documents against an empty base.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal, TypedDict, Union

from langchain_core.documents import Document

from rag_indexer.errors import InputError

# Replaces the whole document list with ``[]`` when returned as an update.
CLEAR_DOCS: Literal["delete"] = "delete"

# Fixed namespace so that content-derived identities are stable across runs.
_CONTENT_NAMESPACE = uuid.UUID("7f1c39d2-4a55-4cf1-9a0e-0d3c8d1f6b21")

DocsUpdate = Union[Sequence[Union[Document, Mapping[str, Any], str]], str, None]


def content_identity(content: str) -> str:
    """Deterministic identity for a document that arrives without one."""
    return str(uuid.uuid5(_CONTENT_NAMESPACE, content))


def _decode(item: Document | Mapping[str, Any] | str) -> Document:
    """Turn a document or one of its serialized forms into a ``Document`` with an id."""
    if isinstance(item, Document):
        doc_id = item.id
        content = item.page_content
        metadata = dict(item.metadata)
    elif isinstance(item, str):
        doc_id = None
        content = item
        metadata = {}
    elif isinstance(item, Mapping):
        # LangChain's own dump puts fields under "kwargs".
        data = item.get("kwargs", item)
        content = data.get("page_content", data.get("pageContent", data.get("content")))
        if not isinstance(content, str):
            raise InputError(f"Serialized document has no text content: {dict(item)!r:.200}")
        doc_id = data.get("id")
        metadata = dict(data.get("metadata") or {})
    else:
        raise InputError(f"Cannot decode document of type {type(item).__name__}")

    doc_id = doc_id or metadata.get("uuid") or content_identity(content)
    doc_id = str(doc_id)
    metadata["uuid"] = doc_id
    return Document(id=doc_id, page_content=content, metadata=metadata)


def reduce_docs(existing: Sequence[Document] | None, new: DocsUpdate) -> list[Document]:
    """Merge *new* into *existing*, deduplicating by identity.

    * ``CLEAR_DOCS`` resets the list to empty.
    * A plain string is treated as a single document.
    * A document whose identity is already present replaces it in place;
      other documents are appended in first-seen order.

    The function is pure: inputs are never mutated.
    """
    if isinstance(new, str) and new == CLEAR_DOCS:
        return []

    if new is None:
        new = []
    elif isinstance(new, str):
        new = [new]

    merged: list[Document] = []
    positions: dict[str, int] = {}
    for item in [*(existing or []), *new]:
        doc = _decode(item)
        if doc.id in positions:
            merged[positions[doc.id]] = doc
        else:
            positions[doc.id] = len(merged)
            merged.append(doc)
    return merged


class IndexState(TypedDict, total=False):
    """State flowing through the ingestion graph.

    Attributes
    ----------
    docs:
        Documents pending indexing.  Becomes ``[]`` once the persist stage
        succeeds.
    """

    docs: Annotated[list[Document], reduce_docs]
