"""
Document API endpoints.

Routes:
- POST /documents - Upload document text and queue indexing
- POST /documents/reindex-pending - Queue indexing for documents without chunks
- POST /documents/{id}/reindex - Clear chunks and queue a fresh index
- GET /documents/indexing-status - Workspace indexing progress
- GET /documents/{id}/status - One document's indexing state

Dependencies: taskengine.application.services, taskengine.models
System role: Document ingestion HTTP API
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from taskengine.api.deps import get_document_service
from taskengine.application.services import (
    DocumentIndexStatus,
    DocumentService,
    EnqueueSummary,
    UploadResult,
    WorkspaceIndexingStatus,
)
from taskengine.core.exceptions import DocumentNotFoundError, ValidationError
from taskengine.models.document import (
    ReindexPendingRequest,
    ReindexResponse,
    UploadDocumentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: UploadDocumentRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> UploadResult:
    """
    Store document text and queue it for background indexing.

    Re-uploading an unchanged file returns status "skipped" without
    queueing work.

    Raises:
        HTTPException(400): Content is empty
    """
    try:
        return await document_service.upload_document(
            workspace_id=request.workspace_id,
            filename=request.filename,
            content=request.content,
            title=request.title,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/reindex-pending", response_model=EnqueueSummary)
async def reindex_pending(
    request: ReindexPendingRequest,
    document_service: DocumentService = Depends(get_document_service),
) -> EnqueueSummary:
    """Queue indexing for every document in a workspace that has no chunks."""
    return await document_service.enqueue_unindexed(request.workspace_id, limit=request.limit)


@router.post("/{document_id}/reindex", response_model=ReindexResponse)
async def reindex_document(
    document_id: UUID,
    document_service: DocumentService = Depends(get_document_service),
) -> ReindexResponse:
    """
    Clear a document's chunks and queue a fresh index.

    Raises:
        HTTPException(404): Document not found
    """
    try:
        task = await document_service.reindex_document(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ReindexResponse(
        document_id=document_id,
        task_id=task.id,
        message="Document queued for re-indexing",
    )


@router.get("/indexing-status", response_model=WorkspaceIndexingStatus)
async def get_indexing_status(
    workspace_id: str = Query(min_length=1),
    document_service: DocumentService = Depends(get_document_service),
) -> WorkspaceIndexingStatus:
    """
    Workspace indexing progress for UI polling.

    Poll every few seconds while is_indexing is true.
    """
    return await document_service.get_workspace_status(workspace_id)


@router.get("/{document_id}/status", response_model=DocumentIndexStatus)
async def get_document_status(
    document_id: UUID,
    document_service: DocumentService = Depends(get_document_service),
) -> DocumentIndexStatus:
    """
    Indexing state of one document.

    Raises:
        HTTPException(404): Document not found
    """
    try:
        return await document_service.get_document_status(document_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
