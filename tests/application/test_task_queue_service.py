"""
Test suite for TaskQueueService.

Exercises the claim/complete/fail protocol against a file-backed SQLite
database, including concurrent claimers on separate connections.

System role: Verification of the relational queue semantics
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from taskengine.application.services.task_queue_service import QueueStats, TaskQueueService
from taskengine.boundary.db.models import TaskPriority, TaskStatus
from taskengine.core.exceptions import FailureKind


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


class TestEnqueue:
    """Test suite for TaskQueueService.enqueue()."""

    async def test_enqueue_should_apply_settings_defaults(self, queue: TaskQueueService) -> None:
        # Act
        task = await queue.enqueue("index-document", {"document_id": "d1"}, "ws-1")

        # Assert
        assert task.status == TaskStatus.PENDING
        assert task.priority == TaskPriority.NORMAL
        assert task.retries == 0
        assert task.max_retries == 3
        assert task.timeout_ms == 5_000
        assert task.payload == {"document_id": "d1"}
        assert task.started_at is None

    async def test_enqueue_should_honor_overrides(self, queue: TaskQueueService) -> None:
        task = await queue.enqueue(
            "index-document",
            {},
            "ws-1",
            priority=TaskPriority.HIGH,
            timeout_ms=1_000,
            max_retries=5,
        )

        assert task.priority == TaskPriority.HIGH
        assert task.timeout_ms == 1_000
        assert task.max_retries == 5

    async def test_enqueue_in_caller_session_should_wait_for_commit(
        self, queue: TaskQueueService, session_factory
    ) -> None:
        """Test a task inserted in a caller's session is invisible until it commits."""
        async with session_factory() as session:
            task = await queue.enqueue("t", {}, "ws-1", session=session)
            await session.rollback()

        assert await queue.get_task(task.id) is None


class TestClaimNextTask:
    """Test suite for TaskQueueService.claim_next_task()."""

    async def test_claim_should_mark_task_running(self, queue: TaskQueueService) -> None:
        # Arrange
        enqueued = await queue.enqueue("t", {}, "ws-1")

        # Act
        claimed = await queue.claim_next_task()

        # Assert
        assert claimed.id == enqueued.id
        assert claimed.status == TaskStatus.RUNNING
        assert claimed.started_at is not None
        assert claimed.progress == 0

    async def test_claim_should_return_none_when_empty(self, queue: TaskQueueService) -> None:
        assert await queue.claim_next_task() is None

    async def test_claim_should_prefer_higher_priority(self, queue: TaskQueueService) -> None:
        low = await queue.enqueue("t", {}, "ws-1", priority=TaskPriority.LOW)
        normal = await queue.enqueue("t", {}, "ws-1", priority=TaskPriority.NORMAL)
        high = await queue.enqueue("t", {}, "ws-1", priority=TaskPriority.HIGH)

        order = [(await queue.claim_next_task()).id for _ in range(3)]

        assert order == [high.id, normal.id, low.id]

    async def test_claim_should_be_fifo_within_priority(self, queue: TaskQueueService) -> None:
        first = await queue.enqueue("t", {}, "ws-1")
        second = await queue.enqueue("t", {}, "ws-1")

        assert (await queue.claim_next_task()).id == first.id
        assert (await queue.claim_next_task()).id == second.id

    async def test_claim_should_skip_future_scheduled_tasks(self, queue: TaskQueueService, clock) -> None:
        # Arrange
        await queue.enqueue("t", {}, "ws-1", scheduled_for=clock.now + timedelta(minutes=5))

        # Act / Assert
        assert await queue.claim_next_task() is None
        clock.advance(minutes=5)
        assert await queue.claim_next_task() is not None

    async def test_single_task_should_be_claimed_by_exactly_one_caller(
        self, queue: TaskQueueService
    ) -> None:
        """Test N concurrent claimers on separate connections: one winner."""
        # Arrange
        await queue.enqueue("t", {}, "ws-1")

        # Act
        results = await asyncio.gather(*(queue.claim_next_task() for _ in range(8)))

        # Assert
        winners = [task for task in results if task is not None]
        assert len(winners) == 1
        stats = await queue.get_queue_stats()
        assert stats.running == 1
        assert stats.pending == 0

    async def test_concurrent_claimers_should_get_distinct_tasks(
        self, queue: TaskQueueService
    ) -> None:
        for _ in range(3):
            await queue.enqueue("t", {}, "ws-1")

        results = await asyncio.gather(*(queue.claim_next_task() for _ in range(3)))

        claimed_ids = [task.id for task in results if task is not None]
        assert len(claimed_ids) == len(set(claimed_ids))
        assert len(claimed_ids) == 3


class TestCompleteTask:
    """Test suite for TaskQueueService.complete_task()."""

    async def test_complete_should_store_result(self, queue: TaskQueueService) -> None:
        await queue.enqueue("t", {}, "ws-1")
        task = await queue.claim_next_task()

        completed = await queue.complete_task(task.id, {"chunks_created": 3})

        assert completed.status == TaskStatus.COMPLETED
        assert completed.result == {"chunks_created": 3}
        assert completed.progress == 100
        assert completed.completed_at is not None

    async def test_complete_should_ignore_task_that_is_not_running(
        self, queue: TaskQueueService
    ) -> None:
        task = await queue.enqueue("t", {}, "ws-1")

        assert await queue.complete_task(task.id, {"x": 1}) is None
        assert (await queue.get_task(task.id)).status == TaskStatus.PENDING


class TestFailTask:
    """Test suite for TaskQueueService.fail_task()."""

    @pytest.mark.parametrize(
        ("retries", "expected_seconds"),
        [(0, 2), (1, 4), (2, 8), (7, 256), (8, 300), (20, 300)],
    )
    def test_compute_backoff_should_grow_exponentially_until_cap(
        self, queue: TaskQueueService, retries: int, expected_seconds: int
    ) -> None:
        assert queue.compute_backoff(retries) == timedelta(seconds=expected_seconds)

    async def test_retryable_failure_should_requeue_with_backoff(
        self, queue: TaskQueueService, clock
    ) -> None:
        # Arrange
        await queue.enqueue("t", {}, "ws-1", max_retries=3)
        task = await queue.claim_next_task()

        # Act
        failed = await queue.fail_task(task.id, "boom")

        # Assert
        assert failed.status == TaskStatus.PENDING
        assert failed.retries == 1
        assert failed.error == "boom"
        assert failed.failure_kind == FailureKind.ERROR
        assert failed.started_at is None
        assert _naive(failed.scheduled_for) == _naive(clock.now + timedelta(seconds=2))

    async def test_task_should_fail_permanently_on_third_failure(
        self, queue: TaskQueueService, clock
    ) -> None:
        """Test max_retries=3: two requeues, then terminal, never a fourth run."""
        # Arrange
        task = await queue.enqueue("t", {}, "ws-1", max_retries=3)
        scheduled = [_naive(task.scheduled_for)]

        # Act
        for attempt in range(3):
            claimed = await queue.claim_next_task()
            assert claimed is not None, f"attempt {attempt + 1} should be claimable"
            failed = await queue.fail_task(claimed.id, f"failure {attempt + 1}")
            scheduled.append(_naive(failed.scheduled_for))
            clock.advance(seconds=600)

        # Assert
        stored = await queue.get_task(task.id)
        assert stored.status == TaskStatus.FAILED
        assert stored.retries == 3
        assert stored.error == "failure 3"
        assert stored.completed_at is not None
        assert await queue.claim_next_task() is None
        # Each requeue pushes scheduled_for later
        assert scheduled[0] < scheduled[1] < scheduled[2]

    async def test_non_retryable_failure_should_fail_immediately(
        self, queue: TaskQueueService
    ) -> None:
        await queue.enqueue("t", {}, "ws-1", max_retries=3)
        task = await queue.claim_next_task()

        failed = await queue.fail_task(
            task.id, "empty", failure_kind=FailureKind.CONTENT, retryable=False
        )

        assert failed.status == TaskStatus.FAILED
        assert failed.retries == 1
        assert failed.failure_kind == FailureKind.CONTENT

    async def test_fail_should_ignore_task_that_is_not_running(
        self, queue: TaskQueueService
    ) -> None:
        task = await queue.enqueue("t", {}, "ws-1")

        assert await queue.fail_task(task.id, "late report") is None
        stored = await queue.get_task(task.id)
        assert stored.status == TaskStatus.PENDING
        assert stored.retries == 0

    async def test_fail_should_ignore_unknown_task(self, queue: TaskQueueService) -> None:
        import uuid

        assert await queue.fail_task(uuid.uuid4(), "nothing") is None


class TestProgressAndCancel:
    """Test suite for update_progress() and cancel_task()."""

    async def test_update_progress_should_clamp_and_store_message(
        self, queue: TaskQueueService
    ) -> None:
        await queue.enqueue("t", {}, "ws-1")
        task = await queue.claim_next_task()

        updated = await queue.update_progress(task.id, 140, "Almost")

        stored = await queue.get_task(task.id)
        assert updated is True
        assert stored.progress == 100
        assert stored.progress_message == "Almost"

    async def test_update_progress_should_skip_task_that_is_not_running(
        self, queue: TaskQueueService
    ) -> None:
        task = await queue.enqueue("t", {}, "ws-1")

        assert await queue.update_progress(task.id, 50) is False
        assert (await queue.get_task(task.id)).progress == 0

    async def test_cancel_should_withdraw_pending_task(self, queue: TaskQueueService) -> None:
        task = await queue.enqueue("t", {}, "ws-1")

        cancelled = await queue.cancel_task(task.id)

        assert cancelled.status == TaskStatus.CANCELLED
        assert await queue.claim_next_task() is None

    async def test_cancel_should_not_touch_completed_task(self, queue: TaskQueueService) -> None:
        await queue.enqueue("t", {}, "ws-1")
        task = await queue.claim_next_task()
        await queue.complete_task(task.id, {})

        assert await queue.cancel_task(task.id) is None
        assert (await queue.get_task(task.id)).status == TaskStatus.COMPLETED

    async def test_completion_after_cancel_should_be_ignored(self, queue: TaskQueueService) -> None:
        await queue.enqueue("t", {}, "ws-1")
        task = await queue.claim_next_task()
        await queue.cancel_task(task.id)

        assert await queue.complete_task(task.id, {"late": True}) is None
        assert (await queue.get_task(task.id)).status == TaskStatus.CANCELLED


class TestQueueStats:
    """Test suite for get_queue_stats() and get_running_task()."""

    async def test_stats_should_count_every_status(self, queue: TaskQueueService) -> None:
        # Arrange
        for _ in range(3):
            await queue.enqueue("t", {}, "ws-1")
        running = await queue.claim_next_task()
        done = await queue.claim_next_task()
        await queue.complete_task(done.id, {})

        # Act
        stats = await queue.get_queue_stats()

        # Assert
        assert stats == QueueStats(pending=1, running=1, completed=1, failed=0, cancelled=0)
        assert stats.total == 3
        assert (await queue.get_running_task()).id == running.id

    async def test_stats_should_filter_by_workspace_and_type(
        self, queue: TaskQueueService
    ) -> None:
        await queue.enqueue("index-document", {}, "ws-1")
        await queue.enqueue("index-document", {}, "ws-2")
        await queue.enqueue("other", {}, "ws-1")

        ws1_index = await queue.get_queue_stats(workspace_id="ws-1", task_type="index-document")
        ws1_all = await queue.get_queue_stats(workspace_id="ws-1")

        assert ws1_index.pending == 1
        assert ws1_all.pending == 2

    async def test_running_task_should_respect_filters(self, queue: TaskQueueService) -> None:
        await queue.enqueue("index-document", {}, "ws-1")
        await queue.claim_next_task()

        assert await queue.get_running_task("index-document", "ws-2") is None
        assert await queue.get_running_task("index-document", "ws-1") is not None
