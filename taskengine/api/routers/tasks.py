"""
Task API endpoints.

Routes:
- POST /tasks/process - Cron trigger: drain a batch of pending tasks
- GET /tasks/status - Queue counts by status
- GET /tasks/{id} - Task detail for polling
- POST /tasks/{id}/cancel - Withdraw a pending or running task

Dependencies: taskengine.application.services, taskengine.core, taskengine.models
System role: Task queue HTTP API
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from taskengine.api.deps import get_executor, get_task_queue, verify_cron_secret
from taskengine.application.services import TaskQueueService
from taskengine.core.task_executor import TaskExecutor
from taskengine.models.task import ProcessTasksResponse, QueueStatusResponse, TaskResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post(
    "/process",
    response_model=ProcessTasksResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def process_tasks(
    max_tasks: int | None = Query(default=None, ge=1, le=100),
    executor: TaskExecutor = Depends(get_executor),
) -> ProcessTasksResponse:
    """
    Process pending tasks in this request.

    Called by an external scheduler with the cron secret. Runs tasks
    sequentially so the request stays within serverless time limits.

    Args:
        max_tasks: Upper bound for this invocation (queue batch size if omitted)
        executor: Injected TaskExecutor

    Returns:
        ProcessTasksResponse: Number of tasks processed
    """
    limit = max_tasks or executor.queue.settings.batch_size
    processed = await executor.process_pending_tasks(limit)
    return ProcessTasksResponse(processed=processed, max_tasks=limit)


@router.get("/status", response_model=QueueStatusResponse)
async def get_queue_status(
    workspace_id: str | None = None,
    task_type: str | None = None,
    queue: TaskQueueService = Depends(get_task_queue),
) -> QueueStatusResponse:
    """Task counts by status, optionally scoped to a workspace and type."""
    stats = await queue.get_queue_stats(workspace_id=workspace_id, task_type=task_type)
    return QueueStatusResponse(**stats.model_dump())


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    queue: TaskQueueService = Depends(get_task_queue),
) -> TaskResponse:
    """
    Get task status, progress and result.

    Raises:
        HTTPException(404): Task not found
    """
    task = await queue.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/cancel", response_model=TaskResponse)
async def cancel_task(
    task_id: UUID,
    queue: TaskQueueService = Depends(get_task_queue),
) -> TaskResponse:
    """
    Cancel a pending or running task.

    Raises:
        HTTPException(404): Task not found
        HTTPException(409): Task already finished
    """
    cancelled = await queue.cancel_task(task_id)
    if cancelled is not None:
        return TaskResponse.model_validate(cancelled)

    existing = await queue.get_task(task_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    raise HTTPException(
        status_code=409,
        detail=f"Task {task_id} is already {existing.status.value}",
    )
