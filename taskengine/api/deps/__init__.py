"""FastAPI dependencies."""

from .dependencies import (
    get_document_service,
    get_executor,
    get_service_cache,
    get_settings_dependency,
    get_task_queue,
    verify_cron_secret,
)

__all__ = [
    "get_document_service",
    "get_executor",
    "get_service_cache",
    "get_settings_dependency",
    "get_task_queue",
    "verify_cron_secret",
]
