"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest
from langchain_core.embeddings import Embeddings

from rag_indexer.config import Settings
from rag_indexer.retrieval.memory_store import clear_memory_store


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class KeywordEmbeddings(Embeddings):
    """Deterministic bag-of-keywords embedding.

    Texts sharing more vocabulary terms get closer vectors; identical texts
    get identical vectors.  Calls are counted so tests can check batching.
    """

    VOCAB = ("postgres", "mongodb", "supabase", "chroma", "vector", "index", "filter", "search")

    def __init__(self) -> None:
        self.document_calls = 0
        self.query_calls = 0

    def _embed(self, text: str) -> list[float]:
        words = [w.strip(".,!?").lower() for w in text.split()]
        vector = [float(words.count(term)) for term in self.VOCAB]
        vector.append(1.0)  # never the zero vector
        return vector

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        return [self._embed(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls += 1
        return self._embed(text)


@pytest.fixture(autouse=True)
def _empty_memory_store():
    """Every test starts with an empty process-wide memory store."""
    clear_memory_store()
    yield
    clear_memory_store()


@pytest.fixture()
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def settings() -> Settings:
    """Settings with every secret blanked, independent of the host environment."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        pg_connection_string="",
        postgres_host="",
        postgres_user="",
        supabase_url="",
        supabase_service_role_key="",
        mongodb_uri="",
        chroma_host="",
    )
