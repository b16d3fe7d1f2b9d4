"""Configuration: connection secrets from the environment and per-run options.

Two layers live here:

* :class:`Settings` holds backend secrets and embedding options.  It is read
  from env vars / ``.env`` once, at the process boundary, and then passed
  explicitly to whatever needs it.
* :class:`BaseConfiguration` / :class:`IndexConfiguration` hold the options of
  a single pipeline invocation.  They are resolved from LangGraph's
  ``config["configurable"]`` mapping and are read-only afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from rag_indexer.errors import ConfigurationError

if TYPE_CHECKING:
    from langchain_core.runnables import RunnableConfig

RetrieverProvider = Literal["postgres", "supabase", "mongodb", "chroma", "memory"]

SAMPLE_DOCS_FILE = Path(__file__).parent / "ingestion" / "sample_docs.json"

# Names of the schema objects created by the provisioner.
TABLE_NAME = "documents"
QUERY_NAME = "match_documents"


class Settings(BaseSettings):
    """Process-wide secrets and connection options, populated from env vars or .env file."""

    # Embedding
    openai_api_key: str = Field(default="", description="OpenAI API key used for embeddings")
    embedding_provider: Literal["openai", "huggingface"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, ge=1)

    # Postgres + pgvector
    pg_connection_string: str = ""
    postgres_host: str = ""
    postgres_port: int = 5432
    postgres_user: str = ""
    postgres_password: str = "postgres"
    postgres_db: str = "vectordb"

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # MongoDB Atlas
    mongodb_uri: str = ""
    mongodb_db_name: str = "vectordb"
    mongodb_index_name: str = "vector_index"

    # Chroma
    chroma_host: str = "localhost"
    chroma_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def postgres_conninfo(self) -> str:
        """Return the Postgres connection string.

        ``PG_CONNECTION_STRING`` wins; otherwise the discrete ``POSTGRES_*``
        settings are assembled into a libpq keyword string, quoted by
        psycopg.  Returns an empty string when neither is configured.
        """
        from psycopg.conninfo import make_conninfo

        if self.pg_connection_string:
            return self.pg_connection_string
        if not (self.postgres_host or self.postgres_user):
            return ""
        return make_conninfo(
            host=self.postgres_host or "localhost",
            port=self.postgres_port,
            user=self.postgres_user or "postgres",
            password=self.postgres_password,
            dbname=self.postgres_db,
        )


class BaseConfiguration(BaseModel):
    """Options shared by every graph that touches a retriever."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    retriever_provider: RetrieverProvider = Field(alias="retrieverProvider")
    k: int = Field(default=5, ge=1, validation_alias=AliasChoices("k", "document_count", "documentCount"))
    filter_kwargs: dict[str, Any] = Field(default_factory=dict, alias="filterKwargs")


class IndexConfiguration(BaseConfiguration):
    """Options for one run of the ingestion graph."""

    use_sample_docs: bool = Field(default=False, alias="useSampleDocs")
    docs_file: Path = Field(default=SAMPLE_DOCS_FILE, alias="docsFile")


def _configurable(config: RunnableConfig | dict[str, Any] | None) -> dict[str, Any]:
    if config is None:
        return {}
    return dict(config.get("configurable") or {})


def _validate(model: type[BaseConfiguration], values: dict[str, Any]) -> Any:
    if not values.get("retriever_provider") and not values.get("retrieverProvider"):
        raise ConfigurationError("retriever_provider is not set")
    try:
        return model.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {model.__name__}: {exc}") from exc


def ensure_configuration(config: RunnableConfig | dict[str, Any] | None) -> BaseConfiguration:
    """Build a :class:`BaseConfiguration` from a LangGraph ``RunnableConfig``."""
    return _validate(BaseConfiguration, _configurable(config))


def ensure_index_configuration(config: RunnableConfig | dict[str, Any] | None) -> IndexConfiguration:
    """Build an :class:`IndexConfiguration` from a LangGraph ``RunnableConfig``."""
    return _validate(IndexConfiguration, _configurable(config))
