"""Configuration management."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingConfig(BaseModel):
    """Tunable parameters for the document chunker."""

    max_chars: int = Field(default=4000, gt=0, description="Maximum characters in a single fragment")
    overlap_chars: int = Field(default=600, ge=0, description="Characters shared by consecutive windows")
    min_chunk: int = Field(default=200, ge=0, description="Windows shorter than this are dropped unless alone")
    base64_min_run: int = Field(default=100, gt=0, description="Opaque runs longer than this are treated as noise")
    repeated_line_min_count: int = Field(default=3, ge=2, description="Short lines seen this often are header/footer")  # noqa: E501
    extraction_concurrency: int = Field(default=4, gt=0, description="Parallel LLM extraction calls")

    @property
    def step(self) -> int:
        """Distance between the starts of two consecutive windows."""
        return max(1, self.max_chars - self.overlap_chars)


class RetrievalConfig(BaseModel):
    """Defaults for the retrieval cascade."""

    default_limit: int = Field(default=5, gt=0)
    similarity_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    threshold_floor: float = Field(default=0.3, ge=0.0, le=1.0)
    candidate_multiplier: int = Field(default=10, gt=0, description="Tier candidates requested per result")
    keyword_multiplier: int = Field(default=5, gt=0)
    vector_timeout_seconds: float = Field(default=5.0, gt=0)
    cluster_similarity_floor: float = Field(default=0.8, ge=0.0, le=1.0)


class MemoryConfig(BaseModel):
    """Customer memory engine knobs."""

    history_cap: int = Field(default=20, gt=0)
    consolidation_every: int = Field(default=4, gt=0, description="Consolidate on every Nth recorded turn")
    direct_evidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    inferred_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    preference_cap: int = Field(default=5, gt=0)
    summary_max_chars: int = Field(default=1000, gt=0)
    profile_max_chars: int = Field(default=500, gt=0)


class Settings(BaseSettings):
    # API Keys
    voyage_api_key: str = ""
    anthropic_api_key: str = ""

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str | None = None
    vector_index_name: str = "knowledge_fragment_embedding"
    # The index is shared by every bot; the scope filter runs after queryNodes, so
    # it is asked for this many times the wanted candidates. Higher values cost
    # index reads but keep small bots from being crowded out by large ones.
    vector_scope_overfetch: int = Field(default=5, ge=1)
    fulltext_index_name: str = "knowledge_fragment_text"

    # Models
    voyage_model: str = "voyage-3"
    anthropic_model: str = "claude-3-5-haiku-latest"
    embedding_max_input_chars: int = Field(default=2000, description="Text is truncated to this before encoding")
    embedding_cache_prefix_chars: int = Field(default=200, description="Prefix length used as the cache key")
    hashing_dimensions: int = Field(default=300, description="Bucket count of the hashing fallback")

    # Language model calls
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = 3

    # Process-wide caches
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 10000

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)

    # App config
    debug: bool = True
    log_format: Literal["console", "json"] = "console"
    service_name: str = "bot-recall"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
        env_nested_delimiter="__",  # Allows RETRIEVAL__SIMILARITY_THRESHOLD=0.7
    )


settings = Settings()
