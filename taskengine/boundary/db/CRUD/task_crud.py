"""
Task CRUD operations.

Queue-specific queries and conditional state transitions for TaskModel.
Every transition out of a state re-checks that state in the same UPDATE
statement, so concurrent workers racing on a row cannot both win.

Dependencies: sqlalchemy, taskengine.boundary.db.models
System role: Task persistence operations for the relational queue
"""

from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskengine.boundary.db.CRUD.base_crud import BaseCRUD
from taskengine.boundary.db.models.task_model import (
    TaskModel,
    TaskStatus,
    priority_rank,
)
from taskengine.core.exceptions import FailureKind


class TaskCRUD(BaseCRUD[TaskModel]):
    """
    CRUD operations for TaskModel.

    Extends BaseCRUD with claim-candidate selection, guarded status
    transitions, and status counting for queue statistics.
    """

    def __init__(self) -> None:
        super().__init__(TaskModel)

    async def get_claim_candidates(
        self,
        session: AsyncSession,
        now: datetime,
        limit: int,
    ) -> Sequence[UUID]:
        """
        Return ids of claimable tasks, best first.

        Eligible: status PENDING and scheduled_for <= now. Ordered by
        priority tier, then age.

        Args:
            session: Async database session
            now: Reference instant for scheduled_for
            limit: Maximum number of ids to return

        Returns:
            Sequence of task UUIDs
        """
        stmt = (
            select(TaskModel.id)
            .where(
                TaskModel.status == TaskStatus.PENDING,
                TaskModel.scheduled_for <= now,
            )
            .order_by(priority_rank, TaskModel.created_at, TaskModel.id)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def claim(
        self,
        session: AsyncSession,
        id: UUID,
        now: datetime,
    ) -> TaskModel | None:
        """
        Atomically flip one PENDING task to RUNNING.

        Single conditional UPDATE: the status predicate is evaluated by the
        database in the same statement that writes, so exactly one of any
        number of concurrent callers gets the row back.

        Args:
            session: Async database session
            id: Candidate task UUID
            now: Claim timestamp stored in started_at

        Returns:
            The claimed TaskModel, or None if another worker got it first
        """
        stmt = (
            update(TaskModel)
            .where(TaskModel.id == id, TaskModel.status == TaskStatus.PENDING)
            .values(
                status=TaskStatus.RUNNING,
                started_at=now,
                progress=0,
                progress_message=None,
            )
            .returning(TaskModel)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(
        self,
        session: AsyncSession,
        id: UUID,
        from_statuses: Sequence[TaskStatus],
        **values: Any,
    ) -> TaskModel | None:
        """
        Update a task only if it is currently in one of from_statuses.

        Args:
            session: Async database session
            id: Task UUID
            from_statuses: Statuses the row must be in for the write to apply
            **values: Column values to set

        Returns:
            Updated TaskModel, or None if the guard did not match
        """
        stmt = (
            update(TaskModel)
            .where(TaskModel.id == id, TaskModel.status.in_(from_statuses))
            .values(**values)
            .returning(TaskModel)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_completed(
        self,
        session: AsyncSession,
        id: UUID,
        result_data: dict[str, Any] | None,
        now: datetime,
    ) -> TaskModel | None:
        """RUNNING → COMPLETED with result; None if not running."""
        return await self.transition(
            session,
            id,
            [TaskStatus.RUNNING],
            status=TaskStatus.COMPLETED,
            result=result_data or {},
            progress=100,
            completed_at=now,
            error=None,
            failure_kind=None,
        )

    async def requeue(
        self,
        session: AsyncSession,
        id: UUID,
        observed_retries: int,
        scheduled_for: datetime,
        error: str,
        failure_kind: FailureKind,
    ) -> TaskModel | None:
        """
        RUNNING → PENDING for a delayed retry.

        Guarded on the retries count the caller read, so a concurrent
        failure report for the same attempt cannot double-increment.
        """
        stmt = (
            update(TaskModel)
            .where(
                TaskModel.id == id,
                TaskModel.status == TaskStatus.RUNNING,
                TaskModel.retries == observed_retries,
            )
            .values(
                status=TaskStatus.PENDING,
                retries=TaskModel.retries + 1,
                scheduled_for=scheduled_for,
                started_at=None,
                error=error,
                failure_kind=failure_kind,
            )
            .returning(TaskModel)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_failed(
        self,
        session: AsyncSession,
        id: UUID,
        observed_retries: int,
        error: str,
        failure_kind: FailureKind,
        now: datetime,
    ) -> TaskModel | None:
        """RUNNING → FAILED permanently; retries incremented once."""
        stmt = (
            update(TaskModel)
            .where(
                TaskModel.id == id,
                TaskModel.status == TaskStatus.RUNNING,
                TaskModel.retries == observed_retries,
            )
            .values(
                status=TaskStatus.FAILED,
                retries=TaskModel.retries + 1,
                error=error,
                failure_kind=failure_kind,
                completed_at=now,
            )
            .returning(TaskModel)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_retry_state(
        self,
        session: AsyncSession,
        id: UUID,
    ) -> tuple[TaskStatus, int, int] | None:
        """
        Read (status, retries, max_retries) without loading the entity.

        Column-only so a following RETURNING update in the same session
        hands back fresh values instead of a stale identity-map copy.
        """
        stmt = select(TaskModel.status, TaskModel.retries, TaskModel.max_retries).where(
            TaskModel.id == id
        )
        result = await session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return TaskStatus(row[0]), row[1], row[2]

    async def count_by_status(
        self,
        session: AsyncSession,
        workspace_id: str | None = None,
        task_type: str | None = None,
    ) -> dict[TaskStatus, int]:
        """
        Count tasks grouped by status.

        Args:
            session: Async database session
            workspace_id: Optional tenant filter
            task_type: Optional task type filter

        Returns:
            Mapping of every TaskStatus to its count (zero when absent)
        """
        stmt = select(TaskModel.status, func.count()).group_by(TaskModel.status)
        if workspace_id is not None:
            stmt = stmt.where(TaskModel.workspace_id == workspace_id)
        if task_type is not None:
            stmt = stmt.where(TaskModel.type == task_type)
        result = await session.execute(stmt)
        counts = {status: 0 for status in TaskStatus}
        for status, count in result.all():
            counts[TaskStatus(status)] = count
        return counts

    async def get_first_by_status(
        self,
        session: AsyncSession,
        status: TaskStatus,
        task_type: str | None = None,
        workspace_id: str | None = None,
    ) -> TaskModel | None:
        """Oldest-started task with the given status, optionally filtered."""
        stmt = select(TaskModel).where(TaskModel.status == status)
        if task_type is not None:
            stmt = stmt.where(TaskModel.type == task_type)
        if workspace_id is not None:
            stmt = stmt.where(TaskModel.workspace_id == workspace_id)
        stmt = stmt.order_by(TaskModel.started_at, TaskModel.created_at).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_workspace_and_type(
        self,
        session: AsyncSession,
        task_type: str,
        workspace_id: str,
        statuses: Sequence[TaskStatus] | None = None,
    ) -> Sequence[TaskModel]:
        """
        Tasks of one type in a workspace, newest first.

        Payload filtering happens in Python; JSON path operators differ
        between PostgreSQL and SQLite.
        """
        stmt = select(TaskModel).where(
            TaskModel.type == task_type,
            TaskModel.workspace_id == workspace_id,
        )
        if statuses:
            stmt = stmt.where(TaskModel.status.in_(statuses))
        stmt = stmt.order_by(TaskModel.created_at.desc())
        result = await session.execute(stmt)
        return result.scalars().all()


task_crud = TaskCRUD()
