"""Exception hierarchy for rag-indexer.

All exceptions derive from :class:`RagIndexerError`, which carries an optional
``backend`` naming the vector store involved::

    RagIndexerError
    +-- ConfigurationError   unknown / missing provider, invalid options
    +-- CredentialError      a backend's required secret is absent
    +-- InputError           nothing (valid) to ingest
    +-- BackendError         the underlying store rejected a call
    +-- ProvisioningError    schema setup failed for one backend

Configuration and credential errors are raised before any network call.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager


class RagIndexerError(Exception):
    """Base exception; ``str()`` is prefixed with ``[backend]`` when known."""

    def __init__(self, message: str, backend: str | None = None) -> None:
        self.message = message
        self.backend = backend
        super().__init__(message)

    def __str__(self) -> str:
        if self.backend:
            return f"[{self.backend}] {self.message}"
        return self.message


class ConfigurationError(RagIndexerError):
    """Raised when the retriever provider is unset, unknown, or options are invalid."""


class CredentialError(RagIndexerError):
    """Raised when a backend's required environment parameters are missing."""


class InputError(RagIndexerError):
    """Raised when there are no documents to index or an item cannot be decoded."""


class BackendError(RagIndexerError):
    """Raised when a vector store call fails (network, auth, query syntax).

    The original exception is kept on :attr:`cause` and chained with ``from``.
    """

    def __init__(self, message: str, backend: str, cause: BaseException | None = None) -> None:
        super().__init__(message, backend=backend)
        self.cause = cause


class ProvisioningError(RagIndexerError):
    """Raised when schema setup fails for a backend."""


@contextmanager
def backend_errors(
    backend: str,
    action: str,
    *exc_types: type[BaseException],
) -> Iterator[None]:
    """Re-raise *exc_types* raised inside the block as :class:`BackendError`.

    Usage::

        with backend_errors("postgres", "upsert", psycopg.Error):
            await cur.executemany(...)
    """
    try:
        yield
    except BackendError:
        raise
    except exc_types as exc:
        raise BackendError(f"{action} failed: {exc}", backend=backend, cause=exc) from exc
