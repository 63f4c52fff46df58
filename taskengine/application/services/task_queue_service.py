"""
Task queue service.

Claim/complete/fail protocol over the tasks table. The relational store is
the only coordination medium: claiming is one conditional UPDATE per
candidate, and every later transition re-checks the running status in the
same statement.

Dependencies: sqlalchemy, pydantic, taskengine.boundary.db, taskengine.configs
System role: Queue semantics for the background task engine
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskengine.boundary.db.base import utcnow
from taskengine.boundary.db.CRUD.task_crud import task_crud
from taskengine.boundary.db.models.task_model import TaskModel, TaskPriority, TaskStatus
from taskengine.configs.task_queue import TaskQueueSettings
from taskengine.core.exceptions import FailureKind

logger = logging.getLogger(__name__)


class QueueStats(BaseModel):
    """Task counts by status."""

    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.running + self.completed + self.failed + self.cancelled


class TaskQueueService:
    """
    Relational task queue.

    Opens one short session per operation from the injected factory, so
    concurrently running handlers never share a transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: TaskQueueSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize queue service.

        Args:
            session_factory: Async session factory bound to the task store
            settings: Retry/timeout defaults (loaded from env if None)
            clock: Source of "now"; tests inject a controllable clock
        """
        self._session_factory = session_factory
        self.settings = settings or TaskQueueSettings()
        self._clock = clock

    def compute_backoff(self, retries: int) -> timedelta:
        """
        Delay before the next attempt after `retries` failed attempts.

        base ** (retries + 1) seconds, capped at backoff_max_seconds.
        """
        seconds = min(
            self.settings.backoff_base_seconds ** (retries + 1),
            self.settings.backoff_max_seconds,
        )
        return timedelta(seconds=seconds)

    async def enqueue(
        self,
        task_type: str,
        payload: Mapping[str, Any],
        workspace_id: str,
        priority: TaskPriority = TaskPriority.NORMAL,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        scheduled_for: datetime | None = None,
        session: AsyncSession | None = None,
    ) -> TaskModel:
        """
        Insert a pending task.

        Args:
            task_type: Handler registry key
            payload: JSON-serializable handler input
            workspace_id: Tenant scope
            priority: Claim ordering tier
            timeout_ms: Per-attempt budget (settings default if None)
            max_retries: Attempt ceiling (settings default if None)
            scheduled_for: Earliest claim time (now if None)
            session: Caller's session; the insert joins its transaction and
                the caller commits. A private session is used if None.

        Returns:
            TaskModel: The created task
        """
        values = dict(
            type=task_type,
            payload=dict(payload),
            workspace_id=workspace_id,
            status=TaskStatus.PENDING,
            priority=priority,
            scheduled_for=scheduled_for or self._clock(),
            retries=0,
            max_retries=max_retries or self.settings.default_max_retries,
            timeout_ms=timeout_ms or self.settings.default_timeout_ms,
        )

        if session is not None:
            task = await task_crud.create(session, **values)
        else:
            async with self._session_factory() as own_session:
                task = await task_crud.create(own_session, **values)
                await own_session.commit()

        logger.info(
            f"{__name__}:enqueue - Enqueued {task_type} task {task.id}",
            extra={"task_id": str(task.id), "task_type": task_type, "workspace_id": workspace_id},
        )
        return task

    async def claim_next_task(self) -> TaskModel | None:
        """
        Claim the best eligible pending task for this worker.

        Candidates are status PENDING with scheduled_for <= now, ordered by
        priority then age. Each candidate is claimed with a conditional
        UPDATE; a zero-row update means another worker won and the next
        candidate is tried, up to claim_attempts.

        Returns:
            The claimed task (status RUNNING), or None if nothing was claimable
        """
        now = self._clock()
        async with self._session_factory() as session:
            candidates = await task_crud.get_claim_candidates(
                session, now, self.settings.claim_attempts
            )
            for candidate_id in candidates:
                task = await task_crud.claim(session, candidate_id, now)
                if task is not None:
                    await session.commit()
                    logger.info(
                        f"{__name__}:claim_next_task - Claimed task {task.id} ({task.type})",
                        extra={"task_id": str(task.id), "task_type": task.type},
                    )
                    return task
                logger.debug(
                    f"{__name__}:claim_next_task - Lost claim race for {candidate_id}",
                    extra={"task_id": str(candidate_id)},
                )
            await session.rollback()
        return None

    async def complete_task(
        self,
        task_id: UUID,
        result: Mapping[str, Any] | None = None,
    ) -> TaskModel | None:
        """
        Mark a running task completed with its result.

        Returns:
            The updated task, or None (logged) if the task was not running
        """
        async with self._session_factory() as session:
            task = await task_crud.mark_completed(
                session, task_id, dict(result) if result else {}, self._clock()
            )
            await session.commit()

        if task is None:
            logger.warning(
                f"{__name__}:complete_task - Task {task_id} is not running; completion ignored",
                extra={"task_id": str(task_id)},
            )
            return None

        logger.info(
            f"{__name__}:complete_task - Task {task_id} completed",
            extra={"task_id": str(task_id)},
        )
        return task

    async def fail_task(
        self,
        task_id: UUID,
        error_message: str,
        failure_kind: FailureKind = FailureKind.ERROR,
        retryable: bool = True,
    ) -> TaskModel | None:
        """
        Record a failed attempt.

        Retryable failures with attempts left go back to PENDING with
        scheduled_for pushed out by the backoff; everything else is FAILED
        permanently. retries is incremented exactly once either way.

        Args:
            task_id: Task UUID
            error_message: Failure reason stored on the row
            failure_kind: Why the attempt failed
            retryable: False forces a permanent failure

        Returns:
            The updated task, or None (logged) if the task was not running
        """
        now = self._clock()
        async with self._session_factory() as session:
            state = await task_crud.get_retry_state(session, task_id)
            if state is None or state[0] != TaskStatus.RUNNING:
                logger.warning(
                    f"{__name__}:fail_task - Task {task_id} is not running; failure ignored",
                    extra={"task_id": str(task_id), "error_msg": error_message},
                )
                return None

            _, retries, max_retries = state
            if retryable and retries + 1 < max_retries:
                retry_at = now + self.compute_backoff(retries)
                task = await task_crud.requeue(
                    session, task_id, retries, retry_at, error_message, failure_kind
                )
                requeued = True
            else:
                task = await task_crud.mark_failed(
                    session, task_id, retries, error_message, failure_kind, now
                )
                requeued = False
            await session.commit()

        if task is None:
            logger.warning(
                f"{__name__}:fail_task - Task {task_id} changed concurrently; failure ignored",
                extra={"task_id": str(task_id)},
            )
            return None

        if requeued:
            logger.warning(
                f"{__name__}:fail_task - Task {task_id} failed (attempt {task.retries}/{task.max_retries}), "
                f"retrying at {task.scheduled_for}: {error_message}",
                extra={"task_id": str(task_id), "failure_kind": failure_kind.value},
            )
        else:
            logger.error(
                f"{__name__}:fail_task - Task {task_id} failed permanently ({failure_kind.value}): {error_message}",
                extra={"task_id": str(task_id), "failure_kind": failure_kind.value},
            )
        return task

    async def update_progress(
        self,
        task_id: UUID,
        progress: int,
        message: str | None = None,
    ) -> bool:
        """
        Persist handler progress for a running task.

        Returns:
            True if the row was updated, False if the task was not running
        """
        async with self._session_factory() as session:
            task = await task_crud.transition(
                session,
                task_id,
                [TaskStatus.RUNNING],
                progress=max(0, min(100, int(progress))),
                progress_message=message,
            )
            await session.commit()
        return task is not None

    async def cancel_task(self, task_id: UUID) -> TaskModel | None:
        """
        Withdraw a pending or running task.

        A running handler is not interrupted; its later completion or
        failure report finds the task no longer running and is ignored.

        Returns:
            The cancelled task, or None if it was already terminal or missing
        """
        async with self._session_factory() as session:
            task = await task_crud.transition(
                session,
                task_id,
                [TaskStatus.PENDING, TaskStatus.RUNNING],
                status=TaskStatus.CANCELLED,
                completed_at=self._clock(),
            )
            await session.commit()

        if task is not None:
            logger.info(
                f"{__name__}:cancel_task - Task {task_id} cancelled",
                extra={"task_id": str(task_id)},
            )
        return task

    async def get_task(self, task_id: UUID) -> TaskModel | None:
        """Fetch one task by id."""
        async with self._session_factory() as session:
            return await task_crud.get_by_id(session, task_id)

    async def get_queue_stats(
        self,
        workspace_id: str | None = None,
        task_type: str | None = None,
    ) -> QueueStats:
        """
        Count tasks by status.

        Args:
            workspace_id: Restrict to one workspace
            task_type: Restrict to one task type

        Returns:
            QueueStats: Counts for every status
        """
        async with self._session_factory() as session:
            counts = await task_crud.count_by_status(session, workspace_id, task_type)
        return QueueStats(**{status.value: count for status, count in counts.items()})

    async def get_running_task(
        self,
        task_type: str | None = None,
        workspace_id: str | None = None,
    ) -> TaskModel | None:
        """Longest-running task, optionally filtered by type and workspace."""
        async with self._session_factory() as session:
            return await task_crud.get_first_by_status(
                session, TaskStatus.RUNNING, task_type, workspace_id
            )

    async def list_tasks(
        self,
        task_type: str,
        workspace_id: str,
        statuses: Sequence[TaskStatus] | None = None,
    ) -> Sequence[TaskModel]:
        """Tasks of one type in a workspace, newest first."""
        async with self._session_factory() as session:
            return await task_crud.get_by_workspace_and_type(
                session, task_type, workspace_id, statuses
            )
