"""Configuration management for the Nightreign search service."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _sanitize_value(value: str) -> str:
    """Remove BOM characters and whitespace from string settings.

    Values copied out of Windows editors or secret managers may carry a BOM
    that breaks model-name lookups and file paths.
    """
    if not value:
        return value
    # Remove BOM (U+FEFF) and strip whitespace
    return value.lstrip("\ufeff").strip()


class FieldBoosts(BaseModel):
    """Keyword relevance multipliers per document field."""

    name: float = Field(default=5.0, ge=0)
    content: float = Field(default=2.0, ge=0)
    tags: float = Field(default=1.5, ge=0)
    section: float = Field(default=1.0, ge=0)
    type: float = Field(default=0.3, ge=0)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field can be set with a ``NIGHTREIGN_`` prefixed variable, e.g.
    ``NIGHTREIGN_SEARCH_DEBUG=true``. Nested boosts use a double underscore:
    ``NIGHTREIGN_FIELD_BOOSTS__NAME=4``.
    """

    model_config = SettingsConfigDict(
        env_prefix="NIGHTREIGN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Data directories
    data_dir: Path = Path("./data")
    index_file: str = "search-index.json"

    # Model settings
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_dimensions: int = Field(default=384, gt=0)
    reranker_model: str = "BAAI/bge-reranker-base"

    @field_validator("embedding_model", "reranker_model", "index_file", mode="after")
    @classmethod
    def sanitize_strings(cls, value: str) -> str:
        """Remove BOM and whitespace from string values."""
        return _sanitize_value(value)

    # Search settings
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)
    max_query_length: int = Field(default=500, ge=1)
    rerank_enabled: bool = True
    rerank_batch_size: int = Field(default=8, ge=1)
    rerank_overfetch_factor: int = Field(default=3, ge=1)
    field_boosts: FieldBoosts = Field(default_factory=FieldBoosts)
    hybrid_text_weight: float = Field(default=0.5, ge=0)
    hybrid_vector_weight: float = Field(default=0.5, ge=0)
    similarity_threshold: float = Field(default=0.5, ge=-1, le=1)

    # Resilience
    embedding_timeout_seconds: float = Field(default=5.0, gt=0)
    rerank_timeout_seconds: float = Field(default=10.0, gt=0)

    # Embedding cache
    embedding_cache_size: int = Field(default=100, ge=0)
    embedding_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    prewarm_on_startup: bool = False

    # Observability
    search_debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False
    debug: bool = False

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = _sanitize_value(value).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def check_limits(self) -> "Settings":
        if self.default_limit > self.max_limit:
            raise ValueError("default_limit must not exceed max_limit")
        if self.hybrid_text_weight + self.hybrid_vector_weight == 0:
            raise ValueError("hybrid weights must not both be zero")
        return self

    @property
    def index_path(self) -> Path:
        """Snapshot file of the search index."""
        return self.data_dir / self.index_file

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

