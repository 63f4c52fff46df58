"""
Document chunk CRUD operations.

Append-mostly chunk persistence: rows are inserted one at a time by the
indexing handler and only ever removed wholesale for a re-index.

Dependencies: sqlalchemy, taskengine.boundary.db.models
System role: Chunk + vector persistence operations
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskengine.boundary.db.CRUD.base_crud import BaseCRUD
from taskengine.boundary.db.models.chunk_model import DocumentChunkModel


class ChunkCRUD(BaseCRUD[DocumentChunkModel]):
    """CRUD operations for DocumentChunkModel."""

    def __init__(self) -> None:
        super().__init__(DocumentChunkModel)

    async def count_by_document(self, session: AsyncSession, document_id: UUID) -> int:
        """Number of chunk rows stored for a document."""
        return await self.count(session, DocumentChunkModel.document_id == document_id)

    async def get_by_document(
        self,
        session: AsyncSession,
        document_id: UUID,
    ) -> Sequence[DocumentChunkModel]:
        """
        Retrieve a document's chunks in reassembly order.

        Args:
            session: Async database session
            document_id: Parent document UUID

        Returns:
            Chunks ordered by chunk_index
        """
        stmt = (
            select(DocumentChunkModel)
            .where(DocumentChunkModel.document_id == document_id)
            .order_by(DocumentChunkModel.chunk_index)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def delete_by_document(self, session: AsyncSession, document_id: UUID) -> int:
        """
        Delete every chunk of a document.

        Returns:
            Number of rows deleted
        """
        stmt = delete(DocumentChunkModel).where(DocumentChunkModel.document_id == document_id)
        result = await session.execute(stmt)
        return result.rowcount


chunk_crud = ChunkCRUD()
