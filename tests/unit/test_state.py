"""Unit tests for the document reducer."""

from __future__ import annotations

import pytest
from langchain_core.documents import Document

from rag_indexer.errors import InputError
from rag_indexer.ingestion.state import CLEAR_DOCS, content_identity, reduce_docs


def _doc(doc_id: str, content: str, **metadata: object) -> Document:
    return Document(id=doc_id, page_content=content, metadata=dict(metadata))


class TestMergePolicy:
    def test_incoming_overwrites_same_identity(self) -> None:
        existing = [_doc("a", "old a"), _doc("b", "old b")]
        result = reduce_docs(existing, [_doc("a", "new a")])
        assert [d.id for d in result] == ["a", "b"]
        assert result[0].page_content == "new a"

    def test_replacement_keeps_position(self) -> None:
        existing = [_doc("a", "1"), _doc("b", "2"), _doc("c", "3")]
        result = reduce_docs(existing, [_doc("b", "two")])
        assert [d.id for d in result] == ["a", "b", "c"]
        assert result[1].page_content == "two"

    def test_new_identities_are_appended_in_order(self) -> None:
        result = reduce_docs([_doc("a", "1")], [_doc("c", "3"), _doc("b", "2")])
        assert [d.id for d in result] == ["a", "c", "b"]

    def test_duplicates_within_incoming_collapse_to_last(self) -> None:
        result = reduce_docs([], [_doc("x", "first"), _doc("y", "y"), _doc("x", "last")])
        assert [d.id for d in result] == ["x", "y"]
        assert result[0].page_content == "last"

    def test_dedup_law(self) -> None:
        a = [_doc("1", "a1"), _doc("2", "a2"), _doc("2", "a2-dup")]
        b = [_doc("2", "b2"), _doc("3", "b3"), _doc("3", "b3-again")]
        result = reduce_docs(a, b)
        ids = [d.id for d in result]
        assert len(ids) == len(set(ids))
        by_id = {d.id: d.page_content for d in result}
        assert by_id["2"] == "b2"
        assert by_id["3"] == "b3-again"

    def test_inputs_are_not_mutated(self) -> None:
        existing = [_doc("a", "1")]
        incoming = [_doc("a", "2")]
        reduce_docs(existing, incoming)
        assert existing[0].page_content == "1"
        assert "uuid" not in existing[0].metadata

    def test_deterministic(self) -> None:
        incoming = [{"page_content": "hello"}, "world"]
        assert reduce_docs([], incoming) == reduce_docs([], incoming)


class TestClearSignal:
    def test_clear_resets_to_empty(self) -> None:
        assert reduce_docs([_doc("a", "1"), _doc("b", "2")], CLEAR_DOCS) == []

    def test_clear_on_empty(self) -> None:
        assert reduce_docs([], CLEAR_DOCS) == []

    def test_none_keeps_existing(self) -> None:
        result = reduce_docs([_doc("a", "1")], None)
        assert [d.id for d in result] == ["a"]


class TestDecoding:
    def test_plain_string_becomes_document(self) -> None:
        result = reduce_docs([], "some text")
        assert len(result) == 1
        assert result[0].page_content == "some text"
        assert result[0].id == content_identity("some text")

    def test_list_of_strings(self) -> None:
        result = reduce_docs([], ["one", "two"])
        assert [d.page_content for d in result] == ["one", "two"]

    def test_serialized_dict_with_id(self) -> None:
        result = reduce_docs([], [{"id": "doc-1", "page_content": "body", "metadata": {"namespace": "n1"}}])
        assert result[0].id == "doc-1"
        assert result[0].metadata["namespace"] == "n1"

    def test_camel_case_page_content(self) -> None:
        result = reduce_docs([], [{"pageContent": "body", "metadata": {"uuid": "u-1"}}])
        assert result[0].id == "u-1"
        assert result[0].page_content == "body"

    def test_langchain_dump_format(self) -> None:
        dumped = Document(id="lc-1", page_content="dumped", metadata={"k": 1}).to_json()
        result = reduce_docs([], [dumped])
        assert result[0].id == "lc-1"
        assert result[0].page_content == "dumped"

    def test_identity_is_recorded_in_metadata(self) -> None:
        result = reduce_docs([], [_doc("a", "1")])
        assert result[0].metadata["uuid"] == "a"

    def test_missing_identity_is_content_derived(self) -> None:
        first = reduce_docs([], [Document(page_content="same text")])
        second = reduce_docs([], [{"content": "same text"}])
        assert first[0].id == second[0].id
        assert first[0].id

    def test_dict_without_content_raises(self) -> None:
        with pytest.raises(InputError, match="no text content"):
            reduce_docs([], [{"id": "x", "metadata": {}}])

    def test_unsupported_type_raises(self) -> None:
        with pytest.raises(InputError, match="Cannot decode"):
            reduce_docs([], [42])  # type: ignore[list-item]
