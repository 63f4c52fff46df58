"""
Document storage adapter for task handlers.

Narrow read/write surface the indexing handler needs: look up a document,
patch its metadata, and append or clear its chunks. Each call commits on
its own session so rows written before a failure stay written.

Dependencies: sqlalchemy, taskengine.boundary.db
System role: Document persistence port used inside task execution
"""

import logging
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskengine.boundary.db.CRUD.chunk_crud import chunk_crud
from taskengine.boundary.db.CRUD.document_crud import document_crud
from taskengine.boundary.db.models.chunk_model import DocumentChunkModel
from taskengine.boundary.db.models.document_model import DocumentModel

logger = logging.getLogger(__name__)


class DocumentStore:
    """Session-per-call document and chunk persistence."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_document(self, document_id: UUID) -> DocumentModel | None:
        async with self._session_factory() as session:
            return await document_crud.get_by_id(session, document_id)

    async def update_document_metadata(
        self,
        document_id: UUID,
        patch: Mapping[str, Any],
    ) -> DocumentModel | None:
        """
        Merge keys into a document's metadata.

        Args:
            document_id: Document UUID
            patch: Keys to set; other keys are preserved

        Returns:
            Updated document, or None if it no longer exists
        """
        async with self._session_factory() as session:
            document = await document_crud.get_by_id(session, document_id)
            if document is None:
                return None
            # Reassign so the JSON column is flagged dirty
            document.doc_metadata = {**(document.doc_metadata or {}), **dict(patch)}
            await session.commit()
            return document

    async def create_chunk(
        self,
        document_id: UUID,
        content: str,
        chunk_index: int,
        embedding: list[float],
    ) -> DocumentChunkModel:
        """Persist one embedded chunk."""
        async with self._session_factory() as session:
            chunk = await chunk_crud.create(
                session,
                document_id=document_id,
                content=content,
                chunk_index=chunk_index,
                embedding=embedding,
            )
            await session.commit()
            return chunk

    async def delete_chunks(self, document_id: UUID) -> int:
        """Remove every chunk of a document; returns the number deleted."""
        async with self._session_factory() as session:
            deleted = await chunk_crud.delete_by_document(session, document_id)
            await session.commit()

        if deleted:
            logger.info(
                f"{__name__}:delete_chunks - Deleted {deleted} chunks for document {document_id}",
                extra={"document_id": str(document_id)},
            )
        return deleted

    async def count_chunks(self, document_id: UUID) -> int:
        async with self._session_factory() as session:
            return await chunk_crud.count_by_document(session, document_id)
