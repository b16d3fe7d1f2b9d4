"""Embedding model selection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rag_indexer.errors import ConfigurationError, CredentialError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_indexer.config import Settings


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the embedding model configured in *settings*.

    ``openai`` (default) uses ``OpenAIEmbeddings`` and needs ``OPENAI_API_KEY``;
    ``huggingface`` runs a local sentence-transformer.  Whichever is chosen,
    its output size must match ``EMBEDDING_DIMENSIONS`` used at provisioning.
    """
    if settings.embedding_provider == "openai":
        if not settings.openai_api_key:
            raise CredentialError("OPENAI_API_KEY environment variable is not defined", backend="openai")
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key)

    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)

    raise ConfigurationError(f"Unsupported embedding provider: {settings.embedding_provider}")
