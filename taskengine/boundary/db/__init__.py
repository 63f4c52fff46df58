"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, UUIDMixin, TimestampMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(): Connection management
  - TaskModel, DocumentModel, DocumentChunkModel: Core domain entities
  - TaskStatus, TaskPriority: Enum types for state tracking
  - task_crud, document_crud, chunk_crud: CRUD operation singletons

Dependencies: sqlalchemy, taskengine.configs
System role: Relational store adapter; the coordination medium for workers
"""

from taskengine.boundary.db.base import Base, TimestampMixin, UUIDMixin, utcnow
from taskengine.boundary.db.connection import (
    get_async_db,
    get_async_engine,
    get_async_session_factory,
)
from taskengine.boundary.db.models import (
    DocumentChunkModel,
    DocumentModel,
    TaskModel,
    TaskPriority,
    TaskStatus,
)
from taskengine.boundary.db.CRUD import (
    BaseCRUD,
    ChunkCRUD,
    DocumentCRUD,
    TaskCRUD,
    chunk_crud,
    document_crud,
    task_crud,
)

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # Connection
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    # Models
    "DocumentChunkModel",
    "DocumentModel",
    "TaskModel",
    "TaskPriority",
    "TaskStatus",
    # CRUD
    "BaseCRUD",
    "ChunkCRUD",
    "DocumentCRUD",
    "TaskCRUD",
    "chunk_crud",
    "document_crud",
    "task_crud",
]
