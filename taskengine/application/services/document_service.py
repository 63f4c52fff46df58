"""
Document service orchestrator.

Coordinates document upload (with content-hash dedup), re-indexing,
backfill of unindexed documents, and the indexing status views polled
by clients. Indexing itself always happens in a background task.

Dependencies: sqlalchemy, pydantic, taskengine.boundary.db,
    taskengine.application.services.task_queue_service
System role: Document ingestion orchestration
"""

import enum
import hashlib
import logging
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskengine.application.services.task_queue_service import QueueStats, TaskQueueService
from taskengine.boundary.db.base import utcnow
from taskengine.boundary.db.CRUD.chunk_crud import chunk_crud
from taskengine.boundary.db.CRUD.document_crud import document_crud
from taskengine.boundary.db.models.document_model import DocumentModel
from taskengine.boundary.db.models.task_model import TaskModel, TaskPriority, TaskStatus
from taskengine.core.exceptions import DocumentNotFoundError, ValidationError
from taskengine.core.handlers.index_document import INDEX_DOCUMENT_TASK

logger = logging.getLogger(__name__)

# Content longer than this is fingerprinted from its two ends plus length
FULL_HASH_MAX_CHARS = 20_000
HASH_EDGE_CHARS = 10_000

_INDEX_STATE_KEYS = ("indexed_at", "chunks_created")


def generate_content_hash(content: str) -> str:
    """
    Fingerprint document text for dedup-on-upload.

    Whole text up to 20 000 characters; beyond that the first and last
    10 000 characters and the total length.

    Args:
        content: Document text (NUL characters already stripped)

    Returns:
        str: Hex md5 digest
    """
    if len(content) <= FULL_HASH_MAX_CHARS:
        sample = content
    else:
        sample = content[:HASH_EDGE_CHARS] + content[-HASH_EDGE_CHARS:] + str(len(content))
    return hashlib.md5(sample.encode("utf-8")).hexdigest()


class UploadStatus(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class UploadResult(BaseModel):
    """Outcome of an upload."""

    status: UploadStatus
    document_id: UUID
    task_id: UUID | None = None
    content_hash: str
    message: str


class DocumentIndexState(str, enum.Enum):
    """
    Indexing state shown to clients.

    INDEXING: An index task is pending or running
    INDEXED: Stored chunk count matches the recorded chunks_created
    INCOMPLETE: Not indexed and nothing queued (partial, cancelled, or never run)
    FAILED: The latest index task failed permanently
    """

    INDEXING = "indexing"
    INDEXED = "indexed"
    INCOMPLETE = "incomplete"
    FAILED = "failed"


class DocumentIndexStatus(BaseModel):
    document_id: UUID
    title: str
    state: DocumentIndexState
    chunks_stored: int
    chunks_expected: int | None = None
    task_id: UUID | None = None
    progress: int | None = None
    progress_message: str | None = None
    error: str | None = None


class WorkspaceIndexingStatus(BaseModel):
    workspace_id: str
    tasks: QueueStats
    total_documents: int
    indexed_documents: int
    unindexed_documents: int
    is_indexing: bool
    current_document_title: str | None = None
    current_progress: int | None = None


class EnqueueSummary(BaseModel):
    queued: int
    already_queued: int
    task_ids: list[UUID]


class DocumentService:
    """
    Document service orchestrator.

    Uses the request-scoped session for document rows and joins index
    task inserts to the same transaction, so a document and its task are
    committed together.
    """

    def __init__(self, db: AsyncSession, queue: TaskQueueService) -> None:
        """
        Initialize document service.

        Args:
            db: AsyncSession for document and chunk rows
            queue: Task queue for enqueueing and task status reads
        """
        self.db = db
        self.queue = queue

    async def upload_document(
        self,
        workspace_id: str,
        filename: str,
        content: str,
        title: str | None = None,
    ) -> UploadResult:
        """
        Store document text and enqueue indexing, skipping unchanged re-uploads.

        Steps:
        1. Strip NUL characters; reject empty content
        2. Fingerprint the content
        3. Same filename and fingerprint in the workspace → skipped
        4. Same filename, new fingerprint → cancel its active index task,
           update in place, drop chunks, enqueue
        5. Otherwise create the document and enqueue

        Args:
            workspace_id: Tenant scope
            filename: Original filename; dedup key within the workspace
            content: Extracted document text
            title: Display title (defaults to filename)

        Returns:
            UploadResult: What happened and the ids involved

        Raises:
            ValidationError: Content is empty after stripping
        """
        content = content.replace("\x00", "")
        if not content.strip():
            raise ValidationError("Document content is empty", field="content")

        content_hash = generate_content_hash(content)
        upload_metadata: dict[str, Any] = {
            "content_hash": content_hash,
            "char_count": len(content),
            "word_count": len(content.split()),
            "uploaded_at": utcnow().isoformat(),
            "needs_indexing": True,
        }

        existing = await document_crud.get_by_filename(self.db, workspace_id, filename)

        if existing is not None and (existing.doc_metadata or {}).get("content_hash") == content_hash:
            logger.info(
                f"{__name__}:upload_document - {filename} unchanged, skipping",
                extra={"document_id": str(existing.id), "workspace_id": workspace_id},
            )
            return UploadResult(
                status=UploadStatus.SKIPPED,
                document_id=existing.id,
                content_hash=content_hash,
                message="Document unchanged, skipped",
            )

        if existing is not None:
            previous = existing.doc_metadata or {}
            await self._withdraw_index_tasks(existing)
            await chunk_crud.delete_by_document(self.db, existing.id)
            existing.text_content = content
            if title:
                existing.title = title
            existing.doc_metadata = {
                **_without_index_state(previous),
                **upload_metadata,
                "previous_version_at": previous.get("uploaded_at"),
            }
            document = existing
            status = UploadStatus.UPDATED
        else:
            document = await document_crud.create(
                self.db,
                workspace_id=workspace_id,
                title=title or filename,
                original_filename=filename,
                text_content=content,
                doc_metadata=upload_metadata,
            )
            status = UploadStatus.CREATED

        task = await self._enqueue_index(document)
        await self.db.commit()

        logger.info(
            f"{__name__}:upload_document - {filename} {status.value}, index task {task.id}",
            extra={"document_id": str(document.id), "task_id": str(task.id)},
        )
        return UploadResult(
            status=status,
            document_id=document.id,
            task_id=task.id,
            content_hash=content_hash,
            message="Document queued for indexing",
        )

    async def reindex_document(
        self,
        document_id: UUID,
        priority: TaskPriority = TaskPriority.NORMAL,
    ) -> TaskModel:
        """
        Clear a document's chunks and enqueue a fresh index task.

        The recovery path for partially indexed documents. A pending or
        running index task for the document is cancelled first.

        Raises:
            DocumentNotFoundError: Document does not exist
        """
        document = await document_crud.get_by_id(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))

        await self._withdraw_index_tasks(document)
        deleted = await chunk_crud.delete_by_document(self.db, document_id)
        document.doc_metadata = {
            **_without_index_state(document.doc_metadata or {}),
            "needs_indexing": True,
        }
        task = await self._enqueue_index(document, priority=priority)
        await self.db.commit()

        logger.info(
            f"{__name__}:reindex_document - Cleared {deleted} chunks, queued task {task.id}",
            extra={"document_id": str(document_id), "task_id": str(task.id)},
        )
        return task

    async def enqueue_unindexed(self, workspace_id: str, limit: int = 50) -> EnqueueSummary:
        """
        Enqueue index tasks for documents that have no chunks.

        Documents that already have a pending or running index task are left
        alone.

        Args:
            workspace_id: Tenant scope
            limit: Maximum documents examined

        Returns:
            EnqueueSummary: Counts and new task ids
        """
        active = await self.queue.list_tasks(
            INDEX_DOCUMENT_TASK, workspace_id, [TaskStatus.PENDING, TaskStatus.RUNNING]
        )
        queued_ids = {str((t.payload or {}).get("document_id")) for t in active}

        documents = await document_crud.get_without_chunks(self.db, workspace_id, limit)
        task_ids: list[UUID] = []
        already_queued = 0
        for document in documents:
            if str(document.id) in queued_ids:
                already_queued += 1
                continue
            task = await self._enqueue_index(document)
            task_ids.append(task.id)
        await self.db.commit()

        logger.info(
            f"{__name__}:enqueue_unindexed - Queued {len(task_ids)} document(s), "
            f"{already_queued} already queued",
            extra={"workspace_id": workspace_id},
        )
        return EnqueueSummary(queued=len(task_ids), already_queued=already_queued, task_ids=task_ids)

    async def get_document_status(self, document_id: UUID) -> DocumentIndexStatus:
        """
        Indexing state of one document.

        Reports INDEXED only when the stored chunk count equals the
        chunks_created recorded at completion.

        Raises:
            DocumentNotFoundError: Document does not exist
        """
        document = await document_crud.get_by_id(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))

        stored = await chunk_crud.count_by_document(self.db, document_id)
        metadata = document.doc_metadata or {}
        expected = metadata.get("chunks_created")
        task = await self._latest_index_task(document)

        if task is not None and task.status in (TaskStatus.PENDING, TaskStatus.RUNNING):
            state = DocumentIndexState.INDEXING
        elif _is_fully_indexed(metadata, stored):
            state = DocumentIndexState.INDEXED
        elif task is not None and task.status == TaskStatus.FAILED:
            state = DocumentIndexState.FAILED
        else:
            state = DocumentIndexState.INCOMPLETE

        return DocumentIndexStatus(
            document_id=document.id,
            title=document.title,
            state=state,
            chunks_stored=stored,
            chunks_expected=expected,
            task_id=task.id if task else None,
            progress=task.progress if task else None,
            progress_message=task.progress_message if task else None,
            error=task.error if task else None,
        )

    async def get_workspace_status(self, workspace_id: str) -> WorkspaceIndexingStatus:
        """Aggregate indexing status for a workspace, for UI polling."""
        stats = await self.queue.get_queue_stats(workspace_id, INDEX_DOCUMENT_TASK)
        total = await document_crud.count_by_workspace(self.db, workspace_id)
        indexed = sum(
            1
            for metadata, stored in await document_crud.get_index_states(self.db, workspace_id)
            if _is_fully_indexed(metadata or {}, stored)
        )

        current_title = None
        current_progress = None
        running = await self.queue.get_running_task(INDEX_DOCUMENT_TASK, workspace_id)
        if running is not None:
            current_progress = running.progress
            document_id = _payload_document_id(running)
            if document_id is not None:
                current_title = await document_crud.get_title(self.db, document_id)

        return WorkspaceIndexingStatus(
            workspace_id=workspace_id,
            tasks=stats,
            total_documents=total,
            indexed_documents=indexed,
            unindexed_documents=total - indexed,
            is_indexing=stats.pending + stats.running > 0,
            current_document_title=current_title,
            current_progress=current_progress,
        )

    async def _enqueue_index(
        self,
        document: DocumentModel,
        priority: TaskPriority = TaskPriority.NORMAL,
    ) -> TaskModel:
        return await self.queue.enqueue(
            INDEX_DOCUMENT_TASK,
            {"document_id": str(document.id), "workspace_id": document.workspace_id},
            document.workspace_id,
            priority=priority,
            session=self.db,
        )

    async def _withdraw_index_tasks(self, document: DocumentModel) -> int:
        """Cancel pending or running index tasks for a document; returns how many."""
        active = await self.queue.list_tasks(
            INDEX_DOCUMENT_TASK, document.workspace_id, [TaskStatus.PENDING, TaskStatus.RUNNING]
        )
        cancelled = 0
        for task in active:
            if _payload_document_id(task) != document.id:
                continue
            if await self.queue.cancel_task(task.id) is not None:
                cancelled += 1

        if cancelled:
            logger.info(
                f"{__name__}:_withdraw_index_tasks - Cancelled {cancelled} index task(s)",
                extra={"document_id": str(document.id)},
            )
        return cancelled

    async def _latest_index_task(self, document: DocumentModel) -> TaskModel | None:
        tasks = await self.queue.list_tasks(INDEX_DOCUMENT_TASK, document.workspace_id)
        for task in tasks:
            if _payload_document_id(task) == document.id:
                return task
        return None


def _is_fully_indexed(metadata: dict[str, Any], stored: int) -> bool:
    return (
        metadata.get("needs_indexing") is False
        and stored > 0
        and stored == metadata.get("chunks_created")
    )


def _without_index_state(metadata: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in metadata.items() if k not in _INDEX_STATE_KEYS}


def _payload_document_id(task: TaskModel) -> UUID | None:
    raw = (task.payload or {}).get("document_id")
    try:
        return UUID(str(raw)) if raw else None
    except ValueError:
        return None
