"""
Built-in task handlers.

build_handler_registry() assembles the registry a worker or API process
hands to its TaskExecutor.
"""

from typing import TYPE_CHECKING

from taskengine.configs.indexing import IndexingSettings
from taskengine.core.handlers.index_document import (
    INDEX_DOCUMENT_TASK,
    DocumentIndexingHandler,
    Embedder,
    IndexDocumentPayload,
)
from taskengine.core.task_registry import HandlerRegistry

if TYPE_CHECKING:
    from taskengine.application.services.document_store import DocumentStore


def build_handler_registry(
    store: "DocumentStore",
    embedder: Embedder,
    indexing_settings: IndexingSettings | None = None,
) -> HandlerRegistry:
    """Registry with every built-in handler registered."""
    registry = HandlerRegistry()
    registry.register(
        INDEX_DOCUMENT_TASK,
        DocumentIndexingHandler(store, embedder, settings=indexing_settings),
    )
    return registry


__all__ = [
    "INDEX_DOCUMENT_TASK",
    "DocumentIndexingHandler",
    "Embedder",
    "IndexDocumentPayload",
    "build_handler_registry",
]
