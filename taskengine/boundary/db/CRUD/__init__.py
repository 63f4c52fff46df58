"""
CRUD operations for database models.

Exports base CRUD class and model-specific CRUD implementations
with pre-instantiated singletons for direct use.

Usage:
    from taskengine.boundary.db.CRUD import task_crud, document_crud, chunk_crud

    task = await task_crud.get_by_id(session, task_id)
"""

from taskengine.boundary.db.CRUD.base_crud import BaseCRUD
from taskengine.boundary.db.CRUD.task_crud import TaskCRUD, task_crud
from taskengine.boundary.db.CRUD.document_crud import DocumentCRUD, document_crud
from taskengine.boundary.db.CRUD.chunk_crud import ChunkCRUD, chunk_crud

__all__ = [
    "BaseCRUD",
    "ChunkCRUD",
    "DocumentCRUD",
    "TaskCRUD",
    "chunk_crud",
    "document_crud",
    "task_crud",
]
