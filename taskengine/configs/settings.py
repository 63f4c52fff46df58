"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides dependency injection factory for FastAPI and the worker.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from taskengine.configs.base import BaseSettings
from taskengine.configs.database import DatabaseSettings
from taskengine.configs.embedding import EmbeddingSettings
from taskengine.configs.indexing import IndexingSettings
from taskengine.configs.task_queue import TaskQueueSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    database: DatabaseSettings = DatabaseSettings()
    task_queue: TaskQueueSettings = TaskQueueSettings()
    indexing: IndexingSettings = IndexingSettings()
    embedding: EmbeddingSettings = EmbeddingSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from taskengine.configs import get_settings
        settings = get_settings()
    """
    return Settings()
