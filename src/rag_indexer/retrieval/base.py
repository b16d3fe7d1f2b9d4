"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`,
implementing the abstract methods, and registering the class in
:mod:`rag_indexer.retrieval.factory`.  The ingestion graph and the HTTP
surface are backend-agnostic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from langchain_core.documents import Document

from rag_indexer.errors import ConfigurationError, InputError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import BaseConfiguration, Settings

logger = logging.getLogger(__name__)


def clamp_score(score: float) -> float:
    """Clamp a similarity score into ``[0, 1]``."""
    return max(0.0, min(1.0, float(score)))


def cosine_distance_to_score(distance: float) -> float:
    """Map a cosine distance in ``[0, 2]`` to a similarity in ``[0, 1]``."""
    return clamp_score(1.0 - distance / 2.0)


class VectorStoreBase(ABC):
    """Backend-agnostic retriever handle.

    A handle is bound to one backend, one result limit and one metadata
    filter for its lifetime.  It owns whatever pool or client it opened and
    releases it in :meth:`aclose`.

    Parameters
    ----------
    embeddings:
        LangChain embedding model used for documents and queries.
    k:
        Maximum number of results returned by :meth:`retrieve`.
    filter_kwargs:
        Exact-match conjunction over metadata keys, applied before ranking.
    """

    #: Provider name used in configuration and error messages.
    name: ClassVar[str] = "base"

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        k: int = 5,
        filter_kwargs: dict[str, Any] | None = None,
    ) -> None:
        if k < 1:
            raise ConfigurationError(f"k must be >= 1, got {k}", backend=self.name)
        self.embeddings = embeddings
        self.k = k
        self.filter_kwargs: dict[str, Any] = dict(filter_kwargs or {})

    @classmethod
    @abstractmethod
    async def create(
        cls,
        configuration: BaseConfiguration,
        settings: Settings,
        embeddings: Embeddings,
    ) -> VectorStoreBase:
        """Validate credentials in *settings*, then connect and return a handle.

        Raises
        ------
        rag_indexer.errors.CredentialError
            Before any network call, when a required secret is missing.
        """
        ...

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def _upsert(self, docs: list[Document], vectors: list[list[float]]) -> None:
        """Insert or replace *docs* keyed by ``Document.id``."""
        ...

    @abstractmethod
    async def _search(self, vector: list[float]) -> list[tuple[Document, float]]:
        """Return up to ``self.k`` filtered matches for *vector*, best first."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    async def delete(self, ids: list[str]) -> None:
        """Delete documents by their IDs.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")

    async def aclose(self) -> None:
        """Release pools / clients owned by this handle."""

    # -- public API -----------------------------------------------------------

    async def add_documents(self, docs: Sequence[Document]) -> list[str]:
        """Embed *docs* (one vector each) and upsert them by identity.

        Returns the stored identities in input order.
        """
        docs = list(docs)
        if not docs:
            return []
        missing = [i for i, d in enumerate(docs) if not d.id]
        if missing:
            raise InputError(f"Documents at positions {missing} have no identity", backend=self.name)

        vectors = await self.embeddings.aembed_documents([d.page_content for d in docs])
        await self._upsert(docs, vectors)
        logger.info("Upserted %d document(s) into %s", len(docs), self.name)
        return [d.id for d in docs]

    async def retrieve(self, query: str) -> list[tuple[Document, float]]:
        """Embed *query* once and return ``(document, score)`` pairs.

        At most ``k`` results, sorted by descending score, every score in
        ``[0, 1]``.
        """
        vector = await self.embeddings.aembed_query(query)
        hits = await self._search(vector)
        hits = [(doc, clamp_score(score)) for doc, score in hits]
        hits.sort(key=lambda hit: hit[1], reverse=True)
        logger.debug("%s returned %d hit(s) for %r", self.name, len(hits), query)
        return hits[: self.k]

    async def __aenter__(self) -> VectorStoreBase:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(k={self.k}, filter_kwargs={self.filter_kwargs!r})"
