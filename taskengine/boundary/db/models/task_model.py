"""
Task ORM model.

Durable record of one unit of deferred work. The row is both the queue
entry and the coordination point between workers: the running status is
the only lock a worker ever holds on a task.

Dependencies: sqlalchemy, taskengine.boundary.db.base
System role: Task record store
"""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text, case
from sqlalchemy.orm import Mapped, mapped_column

from taskengine.boundary.db.base import Base, TimestampMixin, UUIDMixin, utcnow
from taskengine.core.exceptions import FailureKind


class TaskStatus(str, enum.Enum):
    """
    Task lifecycle states.

    PENDING: Waiting to be claimed (possibly scheduled in the future)
    RUNNING: Claimed by exactly one worker
    COMPLETED: Handler returned; result holds its summary
    FAILED: Retries exhausted or non-retryable; error holds the reason
    CANCELLED: Withdrawn before completion
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskPriority(str, enum.Enum):
    """Coarse priority tier; secondary sort key, never preemptive."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class TaskModel(Base, UUIDMixin, TimestampMixin):
    """
    Task ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        type: Handler registry key, e.g. "index-document"
        payload: Handler input, e.g. {"document_id": ..., "workspace_id": ...}
        workspace_id: Tenant scope for status queries
        status: Lifecycle state (TaskStatus)
        priority: Claim ordering tier (TaskPriority)
        scheduled_for: Not claimable before this instant (delayed retry)
        retries: Failed attempts so far; only ever incremented
        max_retries: Attempt ceiling
        timeout_ms: Per-attempt wall-clock budget
        started_at: When the current/last attempt was claimed
        completed_at: When the task reached a terminal state
        error: Last failure message
        failure_kind: Why the last attempt failed (FailureKind)
        progress: Percentage reported by the handler (0-100)
        progress_message: Last progress message from the handler
        result: Handler summary on completion

    Workflow:
        1. Upload path enqueues the row with status=PENDING
        2. Executor claims it (PENDING → RUNNING) with one conditional UPDATE
        3. Handler reports progress; executor completes or fails the task
        4. Failed attempts under max_retries return to PENDING with backoff
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_status_scheduled_for", "status", "scheduled_for"),
        Index("ix_tasks_workspace_type_status", "workspace_id", "type", "status"),
    )

    type: Mapped[str] = mapped_column(String(100), nullable=False)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    workspace_id: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, native_enum=False),
        nullable=False,
        default=TaskStatus.PENDING,
    )

    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority, native_enum=False),
        nullable=False,
        default=TaskPriority.NORMAL,
    )

    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    retries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    timeout_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=300_000)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    failure_kind: Mapped[FailureKind | None] = mapped_column(
        Enum(FailureKind, native_enum=False),
        nullable=True,
    )

    progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Progress percentage (0-100)",
    )
    progress_message: Mapped[str | None] = mapped_column(String(512), nullable=True)

    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<TaskModel id={self.id} type={self.type} status={self.status}>"


# Lower rank is claimed first
priority_rank = case(
    (TaskModel.priority == TaskPriority.HIGH, 0),
    (TaskModel.priority == TaskPriority.NORMAL, 1),
    else_=2,
)
