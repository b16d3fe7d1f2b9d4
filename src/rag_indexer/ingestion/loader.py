"""Document loaders for the ingestion graph."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from rag_indexer.errors import InputError


async def load_serialized_docs(path: str | Path) -> list[Any]:
    """Read a JSON array of serialized documents from *path*.

    Items may be strings or objects with ``page_content`` (or
    ``pageContent``), optional ``id`` and optional ``metadata``.  They are
    decoded later by :func:`~rag_indexer.ingestion.state.reduce_docs`.

    Raises
    ------
    InputError
        The file is missing, is not valid JSON, or is not a JSON array.
    """
    try:
        raw = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Cannot read documents file {str(path)!r}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InputError(f"Documents file {str(path)!r} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise InputError(f"Documents file {str(path)!r} must contain a JSON array")
    return data
