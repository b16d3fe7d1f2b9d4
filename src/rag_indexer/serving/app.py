"""FastAPI application exposing the ingestion graph and retrieval as a REST API."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from rag_indexer import __version__
from rag_indexer.config import Settings, ensure_configuration
from rag_indexer.errors import (
    BackendError,
    ConfigurationError,
    CredentialError,
    InputError,
    RagIndexerError,
)
from rag_indexer.ingestion.graph import ingest, retrieve
from rag_indexer.retrieval.factory import make_retriever

app = FastAPI(
    title="rag-indexer API",
    version=__version__,
    description="Index documents into a vector store and query them.",
)


@lru_cache
def get_settings() -> Settings:
    """Settings are read from the environment once per process."""
    return Settings()


def get_embeddings() -> Any:
    """Embedding model override; ``None`` means "build from settings"."""
    return None


# ── Request / Response schemas ────────────────────────────────────────
class IngestRequest(BaseModel):
    """Documents to index plus the ``configurable`` options of the run."""

    docs: list[dict[str, Any] | str] = Field(default_factory=list)
    configurable: dict[str, Any] = Field(default_factory=dict)


class IngestResponse(BaseModel):
    """Documents still pending after the run (``0`` on success)."""

    pending: int


class RetrieveRequest(BaseModel):
    """A natural-language query plus the ``configurable`` options."""

    query: str
    configurable: dict[str, Any] = Field(default_factory=dict)


class Hit(BaseModel):
    id: str | None
    content: str
    metadata: dict[str, Any]
    score: float


class RetrieveResponse(BaseModel):
    hits: list[Hit]


class Readiness(BaseModel):
    provider: str
    ready: bool


# ── Error mapping ─────────────────────────────────────────────────────
_STATUS: dict[type[RagIndexerError], int] = {
    InputError: 400,
    ConfigurationError: 400,
    CredentialError: 500,
    BackendError: 502,
}


@app.exception_handler(RagIndexerError)
async def _rag_indexer_error(request: Request, exc: RagIndexerError) -> JSONResponse:
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "backend": exc.backend, "detail": exc.message},
    )


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/health/{provider}", response_model=Readiness)
async def readiness(
    provider: str,
    response: Response,
    settings: Settings = Depends(get_settings),
    embeddings: Any = Depends(get_embeddings),
) -> Readiness:
    """Readiness probe for one backend; 503 when it does not answer."""
    configuration = ensure_configuration({"configurable": {"retriever_provider": provider}})
    async with await make_retriever(configuration, settings, embeddings) as retriever:
        ready = await retriever.health_check()
    if not ready:
        response.status_code = 503
    return Readiness(provider=provider, ready=ready)


@app.post("/ingest", response_model=IngestResponse)
async def ingest_route(
    request: IngestRequest,
    settings: Settings = Depends(get_settings),
    embeddings: Any = Depends(get_embeddings),
) -> IngestResponse:
    """Run the ingestion graph on the posted documents."""
    result = await ingest(
        {"docs": request.docs},
        {"configurable": request.configurable},
        settings=settings,
        embeddings=embeddings,
    )
    return IngestResponse(pending=len(result.get("docs") or []))


@app.post("/retrieve", response_model=RetrieveResponse)
async def retrieve_route(
    request: RetrieveRequest,
    settings: Settings = Depends(get_settings),
    embeddings: Any = Depends(get_embeddings),
) -> RetrieveResponse:
    """Return the top-k documents for the query."""
    hits = await retrieve(
        request.query,
        {"configurable": request.configurable},
        settings=settings,
        embeddings=embeddings,
    )
    return RetrieveResponse(
        hits=[
            Hit(id=doc.id, content=doc.page_content, metadata=doc.metadata, score=score)
            for doc, score in hits
        ]
    )
