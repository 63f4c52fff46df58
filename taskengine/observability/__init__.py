"""
Observability module.

Provides structured logging and correlation ID tracking across
API requests and executor task runs.
"""

from taskengine.observability.correlation import (
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from taskengine.observability.logger import configure_logging, get_logger

__all__ = [
    "clear_correlation_id",
    "configure_logging",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
]
