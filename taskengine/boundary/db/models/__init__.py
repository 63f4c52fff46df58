"""
Database models package.

Exports:
  - TaskModel, TaskStatus, TaskPriority: Task record and enums
  - DocumentModel: Uploaded document with metadata bag
  - DocumentChunkModel: Embedded chunk rows

Dependencies: sqlalchemy, taskengine.boundary.db.base
System role: Database model definitions for domain entities
"""

from taskengine.boundary.db.models.task_model import (
    TaskModel,
    TaskPriority,
    TaskStatus,
    priority_rank,
)
from taskengine.boundary.db.models.document_model import DocumentModel
from taskengine.boundary.db.models.chunk_model import DocumentChunkModel

__all__ = [
    "DocumentChunkModel",
    "DocumentModel",
    "TaskModel",
    "TaskPriority",
    "TaskStatus",
    "priority_rank",
]
