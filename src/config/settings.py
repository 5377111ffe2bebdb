"""
Process configuration for the retrieval layer.

Values come from the environment, then a .env file at the repository root.
Read them through get_settings(); it is cached per process.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


VectorBackendName = Literal["pinecone", "chroma", "memory"]


class Settings(BaseSettings):
    """
    Exactly one vector backend is active per process (VECTOR_BACKEND).
    Only the active backend's connection parameters need to be set.

    Relevant variables:
        - VECTOR_BACKEND: pinecone, chroma or memory (default: memory)
        - PINECONE_API_KEY: required when VECTOR_BACKEND=pinecone
        - OPENAI_API_KEY: required when VECTOR_BACKEND=pinecone
        - CHROMA_PERSIST_DIR: local storage path for the chroma backend
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: relational product store
        - LOG_LEVEL / JSON_LOGS: logging output
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- runtime --
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # -- vector backend --
    vector_backend: VectorBackendName = Field(
        default="memory",
        description="Active vector store backend: pinecone, chroma or memory"
    )
    default_top_k: int = Field(default=10, description="Default number of matches per query")

    @field_validator("vector_backend", mode="before")
    @classmethod
    def parse_vector_backend(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # -- Pinecone (remote managed index) --
    pinecone_api_key: str = Field(default="", description="Pinecone API key")
    pinecone_index_name: str = Field(default="drip-products", description="Pinecone index name")
    pinecone_namespace: str = Field(default="drip-products", description="Pinecone namespace for product vectors")
    pinecone_cloud: str = Field(default="aws", description="Serverless cloud for new indexes")
    pinecone_region: str = Field(default="us-east-1", description="Serverless region for new indexes")
    pinecone_ready_poll_seconds: float = Field(
        default=5.0,
        description="Delay between readiness checks after creating an index"
    )
    pinecone_ready_max_attempts: int = Field(
        default=24,
        description="Readiness checks before init gives up on a new index"
    )

    # -- OpenAI (remote embedding model) --
    openai_api_key: str = Field(default="", description="OpenAI API key for embeddings")
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Optional OpenAI-compatible base URL (e.g. a LiteLLM proxy)"
    )
    openai_embedding_model: str = Field(
        default="text-embedding-ada-002",
        description="Embedding model used with the pinecone backend"
    )
    openai_embedding_dimension: int = Field(default=1536, description="Output dimension of the OpenAI model")
    openai_timeout_seconds: float = Field(default=30.0, description="Timeout for embedding requests (seconds)")

    # -- Chroma (local persistent + in-memory embedded index) --
    chroma_persist_dir: Path = Field(
        default=Path("data/chroma-db"),
        description="Directory holding the persistent chroma collection"
    )
    chroma_collection_name: str = Field(default="drip-products", description="Persistent collection name")
    memory_collection_name: str = Field(default="drip-products", description="In-memory collection name")

    @field_validator("chroma_persist_dir", mode="before")
    @classmethod
    def parse_chroma_persist_dir(cls, v):
        if isinstance(v, str):
            return Path(v)
        return v

    # -- Local embedding model (sentence-transformers) --
    local_embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Sentence-transformers model for the chroma and memory backends"
    )
    local_embedding_dimension: int = Field(default=384, description="Output dimension of the local model")
    local_embedding_device: str = Field(default="cpu", description="Torch device for the local model")

    # -- Supabase (relational product store) --
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")
    products_table: str = Field(default="products", description="Table holding catalog products")
    vector_id_column: str = Field(
        default="vector_id",
        description="Column recording the vector-store id assigned to a product"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Cached Settings for this process.

    Raises:
        ValidationError: an environment variable holds an invalid value
    """
    env_file = Path(__file__).resolve().parents[2] / ".env"
    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """Uncached Settings that ignore .env, with keyword overrides."""
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "vector_backend": "memory",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
