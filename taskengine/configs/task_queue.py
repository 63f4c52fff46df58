"""
Task queue and executor configuration settings.

Retry policy, timeouts, and worker pool sizing for the relational
task queue. Mirrors the retry knobs a broker-based worker would expose.

Dependencies: pydantic, pydantic_settings
System role: Background task processing configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from taskengine.configs.base import BaseSettings


class TaskQueueSettings(BaseSettings):
    """Task queue, retry, and executor pool configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TASK_QUEUE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Defaults applied at enqueue time
    default_max_retries: int = Field(default=3, ge=1, description="Maximum attempts per task")
    default_timeout_ms: int = Field(
        default=300_000,
        gt=0,
        description="Per-attempt wall-clock budget in milliseconds",
    )

    # Retry policy
    backoff_base_seconds: float = Field(
        default=2.0,
        gt=1.0,
        description="Exponential backoff base; delay = base ** attempt seconds",
    )
    backoff_max_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Maximum retry backoff in seconds",
    )

    # Executor
    poll_interval_ms: int = Field(default=5000, gt=0, description="Delay between claim attempts")
    max_concurrent: int = Field(default=3, ge=1, description="Concurrent handlers per worker")
    batch_size: int = Field(default=5, ge=1, description="Tasks drained per cron invocation")
    claim_attempts: int = Field(
        default=5,
        ge=1,
        description="Candidates tried per claim before giving up on contention",
    )

    cron_secret: str | None = Field(
        default=None,
        description="Bearer token required by the cron trigger endpoint",
    )
