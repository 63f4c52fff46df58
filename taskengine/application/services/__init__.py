"""
Application services.

Exports:
  - TaskQueueService, QueueStats: Relational task queue
  - DocumentStore: Session-per-call document/chunk persistence for handlers
  - DocumentService: Upload, re-index, and indexing status orchestration
"""

from .document_service import (
    DocumentIndexState,
    DocumentIndexStatus,
    DocumentService,
    EnqueueSummary,
    UploadResult,
    UploadStatus,
    WorkspaceIndexingStatus,
    generate_content_hash,
)
from .document_store import DocumentStore
from .task_queue_service import QueueStats, TaskQueueService

__all__ = [
    "DocumentIndexState",
    "DocumentIndexStatus",
    "DocumentService",
    "DocumentStore",
    "EnqueueSummary",
    "QueueStats",
    "TaskQueueService",
    "UploadResult",
    "UploadStatus",
    "WorkspaceIndexingStatus",
    "generate_content_hash",
]
