"""
Task schemas.

Request/response schemas for the task trigger and status endpoints.

Dependencies: pydantic
System role: Task API contracts
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taskengine.boundary.db.models.task_model import TaskPriority, TaskStatus
from taskengine.core.exceptions import FailureKind


class TaskResponse(BaseModel):
    """Task detail for status polling."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    workspace_id: str
    status: TaskStatus
    priority: TaskPriority
    retries: int
    max_retries: int
    timeout_ms: int
    progress: int
    progress_message: str | None = None
    error: str | None = None
    failure_kind: FailureKind | None = None
    result: dict[str, Any] | None = None
    scheduled_for: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ProcessTasksResponse(BaseModel):
    """Result of a cron-triggered batch drain."""

    processed: int = Field(description="Tasks claimed and executed in this invocation")
    max_tasks: int


class QueueStatusResponse(BaseModel):
    """Task counts by status."""

    pending: int
    running: int
    completed: int
    failed: int
    cancelled: int
