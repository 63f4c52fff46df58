"""
Test suite for DocumentIndexingHandler.

Runs the handler against real document/chunk tables with a scripted
embedder and a fake task context.

System role: Verification of the index-document task handler
"""

import uuid

import pytest

from taskengine.boundary.db.CRUD.chunk_crud import chunk_crud
from taskengine.boundary.db.CRUD.document_crud import document_crud
from taskengine.boundary.db.models import TaskModel
from taskengine.core.chunking import TextChunker
from taskengine.core.exceptions import (
    DocumentNotFoundError,
    EmbeddingBudgetExceededError,
    EmbeddingError,
    EmptyDocumentError,
    InvalidPayloadError,
    RateLimitError,
)
from taskengine.core.handlers import INDEX_DOCUMENT_TASK, build_handler_registry
from taskengine.core.handlers.index_document import DocumentIndexingHandler


async def _create_document(session_factory, text: str, title: str = "Notes"):
    async with session_factory() as session:
        document = await document_crud.create(
            session,
            workspace_id="ws-1",
            title=title,
            original_filename=f"{title}.txt",
            text_content=text,
            doc_metadata={"needs_indexing": True},
        )
        await session.commit()
        return document


async def _chunk_indices(session_factory, document_id) -> list[int]:
    async with session_factory() as session:
        chunks = await chunk_crud.get_by_document(session, document_id)
    return [chunk.chunk_index for chunk in chunks]


def _task_for(document_id, workspace_id: str = "ws-1") -> TaskModel:
    return TaskModel(
        id=uuid.uuid4(),
        type=INDEX_DOCUMENT_TASK,
        payload={"document_id": str(document_id), "workspace_id": workspace_id},
        workspace_id=workspace_id,
    )


@pytest.fixture
def make_handler(document_store, indexing_settings):
    def _make(embedder):
        return DocumentIndexingHandler(document_store, embedder, settings=indexing_settings)

    return _make


class TestIndexDocumentHappyPath:
    """Test suite for a full indexing run."""

    async def test_should_persist_contiguous_chunks_and_mark_indexed(
        self, session_factory, document_store, make_handler, fake_embedder, make_context
    ) -> None:
        # Arrange
        document = await _create_document(session_factory, "x" * 2300)
        handler = make_handler(fake_embedder)
        context = make_context()

        # Act
        result = await handler(_task_for(document.id), context)

        # Assert
        assert result["status"] == "indexed"
        assert result["chunks_created"] == 3
        assert result["chunks_total"] == 3
        assert result["errors"] == 0
        assert result["document_title"] == "Notes"
        assert await _chunk_indices(session_factory, document.id) == [0, 1, 2]

        stored = await document_store.find_document(document.id)
        assert stored.doc_metadata["needs_indexing"] is False
        assert stored.doc_metadata["chunks_created"] == 3
        assert "indexed_at" in stored.doc_metadata

    async def test_should_report_progress_every_interval_and_on_last_chunk(
        self, session_factory, document_store, indexing_settings, fake_embedder, make_context
    ) -> None:
        # 100-char windows with 10 overlap: 12 chunks
        document = await _create_document(session_factory, "y" * 1080)
        handler = DocumentIndexingHandler(
            document_store, fake_embedder, settings=indexing_settings, chunker=TextChunker(100, 10)
        )
        context = make_context()

        result = await handler(_task_for(document.id), context)

        percents = [percent for percent, _ in context.progress]
        total = result["chunks_total"]
        assert total == 12
        expected_embed_points = [10 + round(n / total * 85) for n in (5, 10, 12)]
        assert percents == [5, 10, *expected_embed_points, 100]

    async def test_second_run_should_skip_already_indexed_document(
        self, session_factory, make_handler, fake_embedder, make_context
    ) -> None:
        """Test idempotence: re-running creates zero additional chunk rows."""
        # Arrange
        document = await _create_document(session_factory, "Some text. " * 200)
        handler = make_handler(fake_embedder)
        await handler(_task_for(document.id), make_context())
        indices_before = await _chunk_indices(session_factory, document.id)
        calls_before = len(fake_embedder.calls)

        # Act
        result = await handler(_task_for(document.id), make_context())

        # Assert
        assert result["status"] == "skipped"
        assert result["reason"] == "already indexed"
        assert result["chunks_existing"] == len(indices_before)
        assert await _chunk_indices(session_factory, document.id) == indices_before
        assert len(fake_embedder.calls) == calls_before


class TestIndexDocumentErrors:
    """Test suite for non-retryable input problems."""

    async def test_missing_document_should_raise_not_found(
        self, make_handler, fake_embedder, make_context
    ) -> None:
        handler = make_handler(fake_embedder)

        with pytest.raises(DocumentNotFoundError):
            await handler(_task_for(uuid.uuid4()), make_context())

    async def test_whitespace_document_should_raise_empty_error(
        self, session_factory, make_handler, fake_embedder, make_context
    ) -> None:
        document = await _create_document(session_factory, "   \n\t  ")
        handler = make_handler(fake_embedder)

        with pytest.raises(EmptyDocumentError):
            await handler(_task_for(document.id), make_context())

        assert fake_embedder.calls == []

    async def test_invalid_payload_should_raise_payload_error(
        self, make_handler, fake_embedder, make_context
    ) -> None:
        handler = make_handler(fake_embedder)
        task = TaskModel(type=INDEX_DOCUMENT_TASK, payload={"document_id": "not-a-uuid"}, workspace_id="ws-1")

        with pytest.raises(InvalidPayloadError):
            await handler(task, make_context())


class TestIndexDocumentEmbeddingFailures:
    """Test suite for rate limits, the error budget, and cancellation."""

    async def test_rate_limit_should_retry_same_chunk_without_duplicates(
        self, session_factory, make_handler, make_embedder, make_context
    ) -> None:
        """Test rate-limit transparency: one row per index and the run succeeds."""
        # Arrange
        document = await _create_document(session_factory, "x" * 2300)
        embedder = make_embedder([None, RateLimitError("429 Too Many Requests"), None])
        handler = make_handler(embedder)

        # Act
        result = await handler(_task_for(document.id), make_context())

        # Assert
        assert result["status"] == "indexed"
        assert result["errors"] == 0
        assert await _chunk_indices(session_factory, document.id) == [0, 1, 2]
        # Chunk 1 was sent twice
        assert len(embedder.calls) == 4
        assert embedder.calls[1] == embedder.calls[2]

    async def test_rate_limits_should_not_consume_error_budget(
        self, session_factory, make_handler, make_embedder, make_context
    ) -> None:
        document = await _create_document(session_factory, "short document")
        embedder = make_embedder([RateLimitError("quota exceeded")] * 10)
        handler = make_handler(embedder)

        result = await handler(_task_for(document.id), make_context())

        assert result["status"] == "indexed"
        assert result["errors"] == 0
        assert len(embedder.calls) == 11

    async def test_transient_errors_within_budget_should_not_leave_gaps(
        self, session_factory, make_handler, make_embedder, make_context
    ) -> None:
        document = await _create_document(session_factory, "x" * 2300)
        embedder = make_embedder([None, EmbeddingError("boom"), EmbeddingError("boom"), None])
        handler = make_handler(embedder)

        result = await handler(_task_for(document.id), make_context())

        assert result["status"] == "indexed"
        assert result["errors"] == 2
        assert await _chunk_indices(session_factory, document.id) == [0, 1, 2]

    async def test_four_consecutive_errors_should_exceed_budget(
        self, session_factory, make_handler, make_embedder, make_context
    ) -> None:
        """Test the fourth non-rate-limit error fails the task; earlier chunks remain."""
        # Arrange
        document = await _create_document(session_factory, "x" * 2300)
        embedder = make_embedder([None] + [EmbeddingError("service unavailable")] * 4)
        handler = make_handler(embedder)

        # Act
        with pytest.raises(EmbeddingBudgetExceededError) as exc_info:
            await handler(_task_for(document.id), make_context())

        # Assert
        assert exc_info.value.error_count == 4
        assert "Too many embedding errors (4)" in str(exc_info.value)
        assert "service unavailable" in str(exc_info.value)
        assert await _chunk_indices(session_factory, document.id) == [0]

    async def test_cancellation_should_stop_at_chunk_boundary(
        self, session_factory, document_store, make_handler, fake_embedder, make_context
    ) -> None:
        # Arrange
        document = await _create_document(session_factory, "x" * 2300)
        handler = make_handler(fake_embedder)
        context = make_context(cancel_after_checks=2)

        # Act
        result = await handler(_task_for(document.id), context)

        # Assert
        assert result == {
            "status": "cancelled",
            "document_id": str(document.id),
            "chunks_created": 2,
            "chunks_total": 3,
        }
        assert await _chunk_indices(session_factory, document.id) == [0, 1]
        stored = await document_store.find_document(document.id)
        assert stored.doc_metadata["needs_indexing"] is True

    async def test_cancellation_should_end_rate_limit_wait(
        self, session_factory, make_handler, make_embedder, make_context
    ) -> None:
        document = await _create_document(session_factory, "short document")
        embedder = make_embedder([RateLimitError("429")] * 100)
        handler = make_handler(embedder)
        context = make_context(cancel_after_checks=3)

        result = await handler(_task_for(document.id), context)

        assert result["status"] == "cancelled"
        assert result["chunks_created"] == 0
        assert len(embedder.calls) < 100


class TestBuildHandlerRegistry:
    """Test suite for build_handler_registry()."""

    def test_should_register_index_document_handler(self, document_store, fake_embedder) -> None:
        registry = build_handler_registry(document_store, fake_embedder)

        assert INDEX_DOCUMENT_TASK in registry
        assert isinstance(registry.lookup(INDEX_DOCUMENT_TASK), DocumentIndexingHandler)


class TestDocumentStore:
    """Test suite for the DocumentStore adapter the handler writes through."""

    async def test_delete_chunks_should_remove_all_and_return_count(
        self, session_factory, document_store
    ) -> None:
        # Arrange
        document = await _create_document(session_factory, "Some text.")
        other = await _create_document(session_factory, "Other text.", title="Other")
        for index in range(3):
            await document_store.create_chunk(document.id, f"chunk {index}", index, [0.1])
        await document_store.create_chunk(other.id, "kept", 0, [0.2])

        # Act
        deleted = await document_store.delete_chunks(document.id)

        # Assert
        assert deleted == 3
        assert await document_store.count_chunks(document.id) == 0
        assert await document_store.count_chunks(other.id) == 1

    async def test_delete_chunks_without_chunks_should_return_zero(
        self, session_factory, document_store
    ) -> None:
        document = await _create_document(session_factory, "Some text.")

        assert await document_store.delete_chunks(document.id) == 0
