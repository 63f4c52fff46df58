"""
Document CRUD operations.

Provides Create, Read, Update, Delete operations for DocumentModel
with workspace filtering, filename lookup for upload dedup, and
chunk-presence queries for indexing backfill.

Dependencies: sqlalchemy, taskengine.boundary.db.models
System role: Document persistence operations
"""

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskengine.boundary.db.CRUD.base_crud import BaseCRUD
from taskengine.boundary.db.models.chunk_model import DocumentChunkModel
from taskengine.boundary.db.models.document_model import DocumentModel


class DocumentCRUD(BaseCRUD[DocumentModel]):
    """
    CRUD operations for DocumentModel.

    Extends BaseCRUD with workspace-scoped lookups used by the upload
    path and the indexing status endpoints.
    """

    def __init__(self) -> None:
        super().__init__(DocumentModel)

    async def get_by_filename(
        self,
        session: AsyncSession,
        workspace_id: str,
        filename: str,
    ) -> DocumentModel | None:
        """
        Retrieve the oldest document with a given filename in a workspace.

        Args:
            session: Async database session
            workspace_id: Tenant scope
            filename: Original upload filename

        Returns:
            DocumentModel if found, None otherwise
        """
        stmt = (
            select(DocumentModel)
            .where(
                DocumentModel.workspace_id == workspace_id,
                DocumentModel.original_filename == filename,
            )
            .order_by(DocumentModel.created_at)
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_without_chunks(
        self,
        session: AsyncSession,
        workspace_id: str,
        limit: int | None = None,
    ) -> Sequence[DocumentModel]:
        """
        Retrieve documents in a workspace that have no chunk rows, oldest first.

        Args:
            session: Async database session
            workspace_id: Tenant scope
            limit: Maximum number of documents to return

        Returns:
            Sequence of unindexed DocumentModels
        """
        has_chunks = exists().where(DocumentChunkModel.document_id == DocumentModel.id)
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.workspace_id == workspace_id, ~has_chunks)
            .order_by(DocumentModel.created_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def count_by_workspace(
        self,
        session: AsyncSession,
        workspace_id: str,
    ) -> int:
        """Count all documents in a workspace."""
        return await self.count(session, DocumentModel.workspace_id == workspace_id)

    async def get_index_states(
        self,
        session: AsyncSession,
        workspace_id: str,
    ) -> list[tuple[dict[str, Any] | None, int]]:
        """
        Metadata and stored chunk count for every document in a workspace.

        Args:
            session: Async database session
            workspace_id: Tenant scope

        Returns:
            One (doc_metadata, chunk_count) pair per document
        """
        chunk_count = (
            select(func.count(DocumentChunkModel.id))
            .where(DocumentChunkModel.document_id == DocumentModel.id)
            .correlate(DocumentModel)
            .scalar_subquery()
        )
        stmt = select(DocumentModel.doc_metadata, chunk_count).where(
            DocumentModel.workspace_id == workspace_id
        )
        result = await session.execute(stmt)
        return [(metadata, count) for metadata, count in result.all()]

    async def get_title(self, session: AsyncSession, id: UUID) -> str | None:
        """Return only the title of a document, or None if missing."""
        result = await session.execute(select(DocumentModel.title).where(DocumentModel.id == id))
        return result.scalar_one_or_none()


document_crud = DocumentCRUD()
