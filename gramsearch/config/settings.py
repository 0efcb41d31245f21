"""Application settings and configuration management."""

from functools import lru_cache
from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

from ..core.scorer import SearchConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = Field(default="gramsearch")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    workers: int = Field(default=1)

    # Backend selection: memory, redis or upstash
    backend: str = Field(default="memory")

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_password: Optional[str] = Field(default=None)
    redis_db: Optional[int] = Field(default=None)
    redis_max_connections: int = Field(default=10)

    # Upstash Configuration
    upstash_redis_rest_url: Optional[str] = Field(default=None)
    upstash_redis_rest_token: Optional[str] = Field(default=None)

    # Key layout and expiry
    key_prefix: str = Field(default="gramsearch:")
    session_ttl: int = Field(default=24 * 60 * 60)  # 1 day
    document_ttl: int = Field(default=7 * 24 * 60 * 60)  # 7 days
    index_ttl: int = Field(default=7 * 24 * 60 * 60)  # 7 days

    # In-memory backend
    max_documents: int = Field(default=10000, ge=1)
    session_cleanup_hours: float = Field(default=24.0)

    # Search Configuration
    ngram_size: int = Field(default=3, ge=1)
    min_edgegram: int = Field(default=2)
    max_edgegram: int = Field(default=10, ge=1)
    exact_match_boost: float = Field(default=100.0, ge=0)
    ngram_weight: float = Field(default=0.5, ge=0)
    edgegram_weight: float = Field(default=1.0, ge=0)
    min_score: float = Field(default=0.1, ge=0)
    search_timeout: float = Field(default=10.0, gt=0)
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)
    max_query_length: int = Field(default=200)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080", "http://localhost:8000"]
    )

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    def search_config(self) -> SearchConfig:
        """Build the search engine configuration."""
        return SearchConfig(
            ngram_size=self.ngram_size,
            min_edgegram=self.min_edgegram,
            max_edgegram=self.max_edgegram,
            exact_match_boost=self.exact_match_boost,
            ngram_weight=self.ngram_weight,
            edgegram_weight=self.edgegram_weight,
            min_score=self.min_score,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
