"""Unit tests for the retrieval layer — base contract, in-memory store, factory."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from langchain_core.documents import Document

from rag_indexer.config import BaseConfiguration, Settings
from rag_indexer.errors import ConfigurationError, CredentialError, InputError
from rag_indexer.retrieval.base import clamp_score, cosine_distance_to_score
from rag_indexer.retrieval.factory import ADAPTERS, adapter_class, make_retriever
from rag_indexer.retrieval.memory_store import InMemoryVectorStore, matches_filter

DOCS = [
    Document(id="pg", page_content="postgres vector index", metadata={"namespace": "n1"}),
    Document(id="mongo", page_content="mongodb vector search filter", metadata={"namespace": "n2"}),
    Document(id="supa", page_content="supabase postgres search", metadata={"namespace": "n1"}),
    Document(id="chroma", page_content="chroma index", metadata={"namespace": "n2"}),
    Document(id="bare", page_content="nothing relevant here", metadata={}),
]


@pytest.fixture()
def store(embeddings) -> InMemoryVectorStore:
    return InMemoryVectorStore(embeddings, k=3)


# ── Score helpers ───────────────────────────────────────────────────────


class TestScores:
    def test_clamp(self) -> None:
        assert clamp_score(-0.2) == 0.0
        assert clamp_score(1.3) == 1.0
        assert clamp_score(0.4) == 0.4

    def test_cosine_distance_mapping(self) -> None:
        assert cosine_distance_to_score(0.0) == 1.0
        assert cosine_distance_to_score(1.0) == 0.5
        assert cosine_distance_to_score(2.0) == 0.0


# ── In-memory store (exercises the base-class contract) ────────────────


class TestAddDocuments:
    async def test_returns_ids_in_order(self, store: InMemoryVectorStore) -> None:
        ids = await store.add_documents(DOCS[:2])
        assert ids == ["pg", "mongo"]

    async def test_embeds_in_one_batch(self, store: InMemoryVectorStore, embeddings) -> None:
        await store.add_documents(DOCS)
        assert embeddings.document_calls == 1

    async def test_empty_is_noop(self, store: InMemoryVectorStore, embeddings) -> None:
        assert await store.add_documents([]) == []
        assert embeddings.document_calls == 0

    async def test_missing_identity_rejected(self, store: InMemoryVectorStore) -> None:
        with pytest.raises(InputError, match="no identity"):
            await store.add_documents([Document(page_content="anonymous")])

    async def test_upsert_idempotence(self, store: InMemoryVectorStore) -> None:
        await store.add_documents([Document(id="doc-1", page_content="first version")])
        await store.add_documents([Document(id="doc-1", page_content="second version")])
        assert list(store.records) == ["doc-1"]
        assert store.records["doc-1"][0].page_content == "second version"


class TestRetrieve:
    async def test_result_bound_and_ordering(self, store: InMemoryVectorStore) -> None:
        await store.add_documents(DOCS)
        hits = await store.retrieve("postgres vector search")
        assert len(hits) <= store.k
        scores = [score for _, score in hits]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    async def test_identical_text_scores_one(self, store: InMemoryVectorStore) -> None:
        await store.add_documents(DOCS)
        doc, score = (await store.retrieve("chroma index"))[0]
        assert doc.id == "chroma"
        assert score == pytest.approx(1.0)

    async def test_query_embedded_once(self, store: InMemoryVectorStore, embeddings) -> None:
        await store.add_documents(DOCS)
        await store.retrieve("postgres")
        assert embeddings.query_calls == 1

    async def test_filter_narrowing(self, embeddings) -> None:
        store = InMemoryVectorStore(embeddings, k=10, filter_kwargs={"namespace": "n1"})
        await store.add_documents(DOCS)
        for query in ("mongodb vector search filter", "chroma index", "postgres", "unrelated"):
            hits = await store.retrieve(query)
            assert hits
            assert all(doc.metadata.get("namespace") == "n1" for doc, _ in hits)

    async def test_empty_store(self, store: InMemoryVectorStore) -> None:
        assert await store.retrieve("anything") == []

    async def test_delete(self, store: InMemoryVectorStore) -> None:
        await store.add_documents(DOCS)
        await store.delete(["pg", "missing"])
        assert "pg" not in store.records

    async def test_context_manager_closes(self, store: InMemoryVectorStore) -> None:
        store.aclose = AsyncMock()  # type: ignore[method-assign]
        async with store as handle:
            assert handle is store
        store.aclose.assert_awaited_once()

    def test_k_must_be_positive(self, embeddings) -> None:
        with pytest.raises(ConfigurationError, match="k must be >= 1"):
            InMemoryVectorStore(embeddings, k=0)


class TestMatchesFilter:
    def test_empty_filter_matches_everything(self) -> None:
        assert matches_filter({"a": 1}, {})

    def test_conjunction(self) -> None:
        assert matches_filter({"a": 1, "b": 2}, {"a": 1, "b": 2})
        assert not matches_filter({"a": 1, "b": 3}, {"a": 1, "b": 2})

    def test_missing_key(self) -> None:
        assert not matches_filter({}, {"namespace": None})


# ── Factory ─────────────────────────────────────────────────────────────


class TestFactory:
    @pytest.mark.parametrize("provider", sorted(ADAPTERS))
    def test_dispatch_totality(self, provider: str) -> None:
        assert adapter_class(provider).name == provider

    @pytest.mark.parametrize("provider", [None, "", "unknown-db"])
    def test_unknown_provider(self, provider: str | None) -> None:
        with pytest.raises(ConfigurationError):
            adapter_class(provider)

    async def test_make_memory_retriever(self, settings: Settings, embeddings) -> None:
        cfg = BaseConfiguration(retriever_provider="memory", k=2, filter_kwargs={"namespace": "n1"})
        retriever = await make_retriever(cfg, settings, embeddings)
        assert isinstance(retriever, InMemoryVectorStore)
        assert retriever.k == 2
        assert retriever.filter_kwargs == {"namespace": "n1"}

    async def test_memory_retrievers_share_one_store(self, settings: Settings, embeddings) -> None:
        cfg = BaseConfiguration(retriever_provider="memory")
        async with await make_retriever(cfg, settings, embeddings) as writer:
            await writer.add_documents(DOCS[:1])
        async with await make_retriever(cfg, settings, embeddings) as reader:
            hits = await reader.retrieve("postgres vector index")
        assert [doc.id for doc, _ in hits] == ["pg"]

    def test_directly_built_store_is_private(self, embeddings) -> None:
        assert InMemoryVectorStore(embeddings).records is not InMemoryVectorStore(embeddings).records

    async def test_accepts_runnable_config(self, settings: Settings, embeddings) -> None:
        retriever = await make_retriever({"configurable": {"retrieverProvider": "memory"}}, settings, embeddings)
        assert retriever.name == "memory"

    async def test_unknown_provider_before_any_io(self, settings: Settings) -> None:
        # No embeddings and no OpenAI key: building the model would raise CredentialError.
        with pytest.raises(ConfigurationError):
            await make_retriever({"configurable": {"retriever_provider": "unknown-db"}}, settings)

    @pytest.mark.parametrize("provider", ["postgres", "supabase", "mongodb", "chroma"])
    async def test_missing_credentials(self, provider: str, settings: Settings, embeddings) -> None:
        cfg = BaseConfiguration(retriever_provider=provider)
        with pytest.raises(CredentialError) as excinfo:
            await make_retriever(cfg, settings, embeddings)
        assert excinfo.value.backend == provider

    async def test_default_embeddings_need_api_key(self, settings: Settings) -> None:
        cfg = BaseConfiguration(retriever_provider="memory")
        with pytest.raises(CredentialError, match="OPENAI_API_KEY"):
            await make_retriever(cfg, settings)
