"""
Document indexing configuration settings.

Chunking geometry and embedding-loop error budget for the
index-document handler.

Dependencies: pydantic, pydantic_settings
System role: Indexing handler tuning
"""

from pydantic import Field, model_validator
from pydantic_settings import SettingsConfigDict

from taskengine.configs.base import BaseSettings


class IndexingSettings(BaseSettings):
    """Chunking and embedding-loop configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="INDEXING_",
        case_sensitive=False,
        extra="ignore",
    )

    chunk_size: int = Field(default=1000, gt=0, description="Chunk window in characters")
    chunk_overlap: int = Field(default=100, ge=0, description="Characters shared by neighbours")

    rate_limit_backoff_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Sleep before retrying a rate-limited chunk",
    )
    max_embedding_errors: int = Field(
        default=3,
        ge=0,
        description="Non-rate-limit errors tolerated before the task fails",
    )
    error_retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Sleep before retrying a chunk after a non-rate-limit error",
    )
    progress_interval: int = Field(
        default=5,
        ge=1,
        description="Report progress every N chunks",
    )

    @model_validator(mode="after")
    def _check_overlap(self) -> "IndexingSettings":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self
