"""
Per-task execution context.

What a handler sees of the engine while it runs: a progress callback
persisted to the task row, a log function bound to the task id, and a
cancellation token it must poll between expensive steps.

Dependencies: logging, taskengine.application.services.task_queue_service
System role: Handler-facing side of the executor
"""

import logging
from typing import TYPE_CHECKING

from taskengine.boundary.db.models import TaskStatus

if TYPE_CHECKING:
    from taskengine.application.services.task_queue_service import TaskQueueService
    from taskengine.boundary.db.models import TaskModel

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation flag.

    Set by the executor when an attempt's deadline passes, or when the
    task row is found withdrawn. It never forces an interrupt.

    Handlers observe it through TaskContext.check_cancelled().
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class TaskContext:
    """Handler-facing view of a running task."""

    def __init__(
        self,
        task: "TaskModel",
        queue: "TaskQueueService",
        token: CancellationToken,
    ) -> None:
        """
        Initialize context.

        Args:
            task: The claimed task
            queue: Queue used to persist progress
            token: Cancellation token owned by the executor
        """
        self.task = task
        self._queue = queue
        self._token = token

    @property
    def task_id(self) -> str:
        return str(self.task.id)

    async def update_progress(self, progress: float, message: str | None = None) -> None:
        """
        Report progress (0-100) with an optional message.

        Logged always; persisted to the task row while it is running.
        A failed progress write is logged and does not fail the task. A
        write that finds the row no longer running (cancelled, or failed by
        the executor) trips the cancellation token.
        """
        percent = max(0, min(100, round(progress)))
        logger.info(
            f"{__name__}:update_progress - Task {self.task_id} progress {percent}%"
            + (f" - {message}" if message else ""),
            extra={"task_id": self.task_id, "progress": percent},
        )
        try:
            still_running = await self._queue.update_progress(self.task.id, percent, message)
        except Exception as e:
            logger.warning(
                f"{__name__}:update_progress - Could not persist progress: {type(e).__name__}: {e}",
                extra={"task_id": self.task_id},
            )
            return

        if not still_running:
            self._token.cancel("task is no longer running")

    async def confirm_running(self) -> bool:
        """
        Re-read the task row before a write that must belong to this attempt.

        A row that is missing or no longer running (cancelled by a
        re-upload or reindex, or failed by the executor) trips the token.
        A failed read is logged and leaves the token as it was.

        Returns:
            bool: False once this attempt should stop writing
        """
        try:
            task = await self._queue.get_task(self.task.id)
        except Exception as e:
            logger.warning(
                f"{__name__}:confirm_running - Could not read task row: {type(e).__name__}: {e}",
                extra={"task_id": self.task_id},
            )
            return not self._token.cancelled

        if task is None or task.status != TaskStatus.RUNNING:
            self._token.cancel("task is no longer running")
        return not self._token.cancelled

    def log(self, message: str) -> None:
        """Log a handler message tagged with the task id."""
        logger.info(f"[Task {self.task_id}] {message}", extra={"task_id": self.task_id})

    def check_cancelled(self) -> bool:
        """True once the executor has given up on this attempt."""
        return self._token.cancelled
