"""
Document ORM model.

Uploaded document text plus a JSON metadata bag the indexing handler and
upload path share (needs_indexing, content_hash, chunks_created, indexed_at).

Dependencies: sqlalchemy, taskengine.boundary.db.base
System role: Document persistence consumed by the indexing handler
"""

from typing import Any

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskengine.boundary.db.base import Base, TimestampMixin, UUIDMixin


class DocumentModel(Base, UUIDMixin, TimestampMixin):
    """
    Document ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        workspace_id: Tenant scope
        title: Display title shown in progress UIs
        original_filename: Upload filename; dedup key within a workspace
        text_content: Extracted text to be chunked and embedded
        doc_metadata: JSON bag stored in the "metadata" column
        created_at: Upload timestamp (UTC)
        updated_at: Last change timestamp (UTC)

    Relationships:
        chunks: DocumentChunkModel rows (cascade delete)
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_workspace_filename", "workspace_id", "original_filename"),
    )

    workspace_id: Mapped[str] = mapped_column(String(255), nullable=False)

    title: Mapped[str] = mapped_column(String(512), nullable=False)

    original_filename: Mapped[str | None] = mapped_column(String(512), nullable=True)

    text_content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # "metadata" is reserved on declarative classes
    doc_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    chunks = relationship(
        "DocumentChunkModel",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
