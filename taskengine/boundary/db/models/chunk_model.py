"""
Document chunk ORM model.

One embedded window of a document's text. Rows for a document form a
contiguous 0..n-1 chunk_index sequence once fully written.

Dependencies: sqlalchemy, taskengine.boundary.db.base
System role: Chunk + vector persistence for the ingestion write path
"""

import uuid

from sqlalchemy import JSON, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskengine.boundary.db.base import Base, TimestampMixin, UUIDMixin


class DocumentChunkModel(Base, UUIDMixin, TimestampMixin):
    """
    Document chunk ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        document_id: Parent document (ON DELETE CASCADE)
        content: Chunk text
        chunk_index: 0-based reassembly order, unique per document
        embedding: Embedding vector as a JSON float list

    Constraints:
        (document_id, chunk_index): UNIQUE; an index is never reused
    """

    __tablename__ = "document_chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_document_index"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)

    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False, default=list)

    document = relationship("DocumentModel", back_populates="chunks")
