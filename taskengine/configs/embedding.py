"""
Embedding service configuration settings.

Model selection and credentials for the embedding provider.

Dependencies: pydantic, pydantic_settings
System role: Embedding adapter configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from taskengine.configs.base import BaseSettings


class EmbeddingSettings(BaseSettings):
    """Google Generative AI embedding configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EMBEDDING_",
        case_sensitive=False,
        extra="ignore",
    )

    model: str = Field(
        default="models/gemini-embedding-001",
        description="Google embedding model ID",
    )
    dimension: int = Field(default=1024, gt=0, description="Output vector dimension")
    google_api_key: str | None = Field(
        default=None,
        description="API key; falls back to GOOGLE_API_KEY when unset",
    )
