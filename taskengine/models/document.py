"""
Document schemas.

Request/response schemas for upload and re-index endpoints. Status
responses reuse the service-level models directly.

Dependencies: pydantic
System role: Document API contracts
"""

import uuid

from pydantic import BaseModel, Field


class UploadDocumentRequest(BaseModel):
    """Request schema for uploading extracted document text."""

    workspace_id: str = Field(min_length=1, description="Tenant scope")
    filename: str = Field(min_length=1, description="Original filename; dedup key")
    content: str = Field(description="Extracted document text")
    title: str | None = Field(default=None, description="Display title (defaults to filename)")


class ReindexResponse(BaseModel):
    """Response schema for a queued re-index."""

    document_id: uuid.UUID
    task_id: uuid.UUID
    message: str


class ReindexPendingRequest(BaseModel):
    """Request schema for backfilling unindexed documents."""

    workspace_id: str = Field(min_length=1)
    limit: int = Field(default=50, ge=1, le=500)
