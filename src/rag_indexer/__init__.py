"""rag-indexer: index documents into pluggable vector stores and retrieve them."""

__version__ = "0.1.0"
