"""
Document indexing task handler.

Chunks a document's text, embeds each chunk sequentially, and persists
chunk rows with contiguous indices. Re-entry is safe: a document that
already has chunks is skipped, so a retried or duplicated task never
writes a second set.

Dependencies: pydantic, tenacity, taskengine.core, taskengine.application.services
System role: Handler registered under "index-document"
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_fixed

from taskengine.boundary.db.base import utcnow
from taskengine.configs.indexing import IndexingSettings
from taskengine.core.chunking import TextChunker
from taskengine.core.exceptions import (
    DocumentNotFoundError,
    EmbeddingBudgetExceededError,
    EmbeddingError,
    EmptyDocumentError,
    InvalidPayloadError,
    RateLimitError,
)

if TYPE_CHECKING:
    from taskengine.application.services.document_store import DocumentStore
    from taskengine.boundary.db.models import TaskModel
    from taskengine.core.task_context import TaskContext

logger = logging.getLogger(__name__)

INDEX_DOCUMENT_TASK = "index-document"


class IndexDocumentPayload(BaseModel):
    """Payload of an index-document task."""

    document_id: UUID
    workspace_id: str


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class DocumentIndexingHandler:
    """
    Index one document: chunk, embed, persist.

    Rate-limit errors are retried on the same chunk after a fixed pause
    and never count against the error budget. Other embedding errors are
    counted; the same chunk is retried until the budget is exceeded, at
    which point the task fails and the chunks written so far remain.
    """

    def __init__(
        self,
        store: "DocumentStore",
        embedder: Embedder,
        settings: IndexingSettings | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        """
        Initialize handler.

        Args:
            store: Document and chunk persistence
            embedder: Embedding client (embed(text) -> vector)
            settings: Chunking and error-budget configuration
            chunker: Chunker override (built from settings if None)
        """
        self._store = store
        self._embedder = embedder
        self.settings = settings or IndexingSettings()
        self._chunker = chunker or TextChunker(
            chunk_size=self.settings.chunk_size,
            overlap=self.settings.chunk_overlap,
        )

    async def __call__(self, task: "TaskModel", context: "TaskContext") -> dict[str, Any]:
        """
        Run the indexing pipeline for the task's document.

        Args:
            task: Claimed index-document task
            context: Progress, logging and cancellation for this attempt

        Returns:
            dict: Summary with status indexed, skipped or cancelled

        Raises:
            InvalidPayloadError: Payload lacks a valid document_id/workspace_id
            DocumentNotFoundError: Document was deleted before indexing
            EmptyDocumentError: Document has no text
            EmbeddingBudgetExceededError: Too many non-rate-limit embedding errors
        """
        payload = self._parse_payload(task)
        document_id = payload.document_id

        document = await self._store.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))

        existing = await self._store.count_chunks(document_id)
        if existing > 0:
            context.log(f"Document {document_id} already has {existing} chunks, skipping")
            return {
                "status": "skipped",
                "reason": "already indexed",
                "document_id": str(document_id),
                "chunks_existing": existing,
            }

        text = document.text_content or ""
        if not text.strip():
            raise EmptyDocumentError(f"Document {document_id} has no text content", str(document_id))

        await context.update_progress(5, "Chunking document")
        chunks = self._chunker.chunk(text)
        total = len(chunks)
        context.log(f"Split '{document.title}' into {total} chunks")
        await context.update_progress(10, f"Embedding {total} chunks")

        created = 0
        error_count = 0
        while created < total:
            if context.check_cancelled():
                return _cancelled(context, document_id, created, total)

            content = chunks[created]
            try:
                vector = await self._embed(content, context)
            except RateLimitError:
                # Rate-limit retries stop only on cancellation
                continue
            except EmbeddingError as e:
                error_count += 1
                logger.warning(
                    f"{__name__}:__call__ - Embedding error {error_count} on chunk {created}: {e}",
                    extra={"document_id": str(document_id), "chunk_index": created},
                )
                if error_count > self.settings.max_embedding_errors:
                    raise EmbeddingBudgetExceededError(error_count, str(e), str(document_id)) from e
                await asyncio.sleep(self.settings.error_retry_delay_seconds)
                continue

            # A re-upload or reindex withdraws this task before clearing chunks
            if not await context.confirm_running():
                return _cancelled(context, document_id, created, total)

            await self._store.create_chunk(document_id, content, created, vector)
            created += 1

            if created % self.settings.progress_interval == 0 or created == total:
                await context.update_progress(
                    10 + round(created / total * 85),
                    f"Embedded {created}/{total} chunks",
                )

        await self._store.update_document_metadata(
            document_id,
            {
                "needs_indexing": False,
                "indexed_at": utcnow().isoformat(),
                "chunks_created": created,
            },
        )
        await context.update_progress(100, "Indexing complete")

        return {
            "status": "indexed",
            "document_id": str(document_id),
            "document_title": document.title,
            "chunks_created": created,
            "chunks_total": total,
            "errors": error_count,
        }

    def _parse_payload(self, task: "TaskModel") -> IndexDocumentPayload:
        try:
            return IndexDocumentPayload.model_validate(task.payload or {})
        except PydanticValidationError as e:
            raise InvalidPayloadError(
                f"Invalid {INDEX_DOCUMENT_TASK} payload: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False)},
            ) from e

    async def _embed(self, content: str, context: "TaskContext") -> list[float]:
        """Embed one chunk, waiting out rate limits until cancelled."""

        def stop_when_cancelled(retry_state: RetryCallState) -> bool:
            return context.check_cancelled()

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RateLimitError),
            wait=wait_fixed(self.settings.rate_limit_backoff_seconds),
            stop=stop_when_cancelled,
            before_sleep=self._log_rate_limited,
            reraise=True,
        ):
            with attempt:
                vector = await self._embedder.embed(content)
        return vector

    def _log_rate_limited(self, retry_state: RetryCallState) -> None:
        logger.warning(
            f"{__name__}:_embed - Rate limited (attempt {retry_state.attempt_number}), "
            f"retrying in {self.settings.rate_limit_backoff_seconds}s",
        )


def _cancelled(context: "TaskContext", document_id: UUID, created: int, total: int) -> dict[str, Any]:
    context.log(f"Cancelled after {created}/{total} chunks")
    return {
        "status": "cancelled",
        "document_id": str(document_id),
        "chunks_created": created,
        "chunks_total": total,
    }
