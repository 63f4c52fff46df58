"""
Task executor.

Claims tasks from the queue, dispatches them to registered handlers, races
each attempt against its timeout, and reports the outcome back to the
queue. Runs either as a bounded batch drain (cron trigger) or as a
continuous polling pool (worker process).

Dependencies: asyncio, taskengine.core, taskengine.observability
System role: Execution engine between the queue and task handlers
"""

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Any, Mapping

from taskengine.core.exceptions import (
    FailureKind,
    HandlerNotRegisteredError,
    NonRetryableTaskError,
    TaskTimeoutError,
)
from taskengine.core.task_context import CancellationToken, TaskContext
from taskengine.core.task_registry import HandlerRegistry
from taskengine.observability.correlation import correlation_scope

if TYPE_CHECKING:
    from taskengine.application.services.task_queue_service import TaskQueueService
    from taskengine.boundary.db.models import TaskModel

logger = logging.getLogger(__name__)


class TaskOutcome(str, enum.Enum):
    """How one execution attempt ended, from the executor's side."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class TaskExecutor:
    """
    Runs claimed tasks through their handlers.

    Constructed with the queue it reports to and the registry it
    dispatches from; holds no other state apart from the set of handlers
    still running after their attempt timed out.
    """

    def __init__(self, queue: "TaskQueueService", registry: HandlerRegistry) -> None:
        self.queue = queue
        self.registry = registry
        self._abandoned: set[asyncio.Task] = set()

    async def execute_task(self, task: "TaskModel") -> TaskOutcome:
        """
        Execute one claimed task and report its outcome.

        Steps:
        1. Look up the handler; missing → permanent configuration failure
        2. Build a TaskContext with a fresh CancellationToken
        3. Race the handler against timeout_ms
        4. Complete on result, fail on exception or timeout

        Args:
            task: Task in RUNNING status, claimed by this worker

        Returns:
            TaskOutcome: Completed, failed, or timed out
        """
        with correlation_scope(str(task.id)):
            handler = self.registry.lookup(task.type)
            if handler is None:
                error = HandlerNotRegisteredError(task.type)
                logger.error(
                    f"{__name__}:execute_task - {error}",
                    extra={"task_id": str(task.id), "task_type": task.type},
                )
                await self.queue.fail_task(
                    task.id, str(error), failure_kind=error.failure_kind, retryable=False
                )
                return TaskOutcome.FAILED

            logger.info(
                f"{__name__}:execute_task - Running {task.type} task {task.id} "
                f"(attempt {task.retries + 1}/{task.max_retries}, timeout {task.timeout_ms}ms)",
                extra={"task_id": str(task.id), "task_type": task.type},
            )

            token = CancellationToken()
            context = TaskContext(task, self.queue, token)
            run = asyncio.create_task(handler(task, context), name=f"task-{task.id}")

            try:
                done, _ = await asyncio.wait({run}, timeout=task.timeout_ms / 1000)
            except asyncio.CancelledError:
                token.cancel("executor cancelled")
                self._abandon(run, task)
                raise

            if not done:
                timeout_error = TaskTimeoutError(str(task.id), task.timeout_ms)
                token.cancel(str(timeout_error))
                self._abandon(run, task)
                logger.error(
                    f"{__name__}:execute_task - Task {task.id} timed out after {task.timeout_ms}ms",
                    extra={"task_id": str(task.id), "task_type": task.type},
                )
                await self.queue.fail_task(
                    task.id, str(timeout_error), failure_kind=FailureKind.TIMEOUT
                )
                return TaskOutcome.TIMED_OUT

            try:
                result = run.result()
            except NonRetryableTaskError as e:
                logger.error(
                    f"{__name__}:execute_task - Task {task.id} failed permanently: {e}",
                    extra={"task_id": str(task.id), "failure_kind": e.failure_kind.value, "details": e.details},
                )
                await self.queue.fail_task(
                    task.id, str(e), failure_kind=e.failure_kind, retryable=False
                )
                return TaskOutcome.FAILED
            except Exception as e:
                logger.exception(
                    f"{__name__}:execute_task - Task {task.id} failed: {type(e).__name__}: {e}",
                    extra={"task_id": str(task.id), "task_type": task.type},
                )
                await self.queue.fail_task(task.id, str(e) or type(e).__name__)
                return TaskOutcome.FAILED

            await self.queue.complete_task(task.id, _as_result(result))
            logger.info(
                f"{__name__}:execute_task - Task {task.id} completed",
                extra={"task_id": str(task.id), "task_type": task.type},
            )
            return TaskOutcome.COMPLETED

    async def process_pending_tasks(self, max_tasks: int | None = None) -> int:
        """
        Drain up to max_tasks tasks sequentially.

        Stops early when nothing is claimable. Intended for a cron trigger.

        Args:
            max_tasks: Upper bound (queue batch_size if None)

        Returns:
            int: Number of tasks claimed and executed, whatever their outcome
        """
        limit = max_tasks if max_tasks is not None else self.queue.settings.batch_size
        processed = 0
        while processed < limit:
            task = await self.queue.claim_next_task()
            if task is None:
                break
            await self.execute_task(task)
            processed += 1

        logger.info(
            f"{__name__}:process_pending_tasks - Processed {processed} task(s)",
            extra={"processed": processed, "max_tasks": limit},
        )
        return processed

    def start_task_processor(
        self,
        poll_interval_ms: int | None = None,
        max_concurrent: int | None = None,
    ) -> "TaskProcessorHandle":
        """
        Start the continuous polling pool on the running event loop.

        Args:
            poll_interval_ms: Delay between claim attempts (settings default if None)
            max_concurrent: Handlers allowed in flight at once (settings default if None)

        Returns:
            TaskProcessorHandle: stop() / wait() / active_count
        """
        settings = self.queue.settings
        return TaskProcessorHandle(
            self,
            poll_interval_ms=poll_interval_ms or settings.poll_interval_ms,
            max_concurrent=max_concurrent or settings.max_concurrent,
        )

    @property
    def abandoned_count(self) -> int:
        """Handlers still running after their attempt timed out."""
        return len(self._abandoned)

    def _abandon(self, run: asyncio.Task, task: "TaskModel") -> None:
        """Let a timed-out handler finish cooperatively and drop its result."""
        self._abandoned.add(run)

        def _discard(finished: asyncio.Task) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            late_error = finished.exception()
            logger.info(
                f"{__name__}:execute_task - Discarded late "
                f"{'error' if late_error else 'result'} from timed-out task {task.id}",
                extra={"task_id": str(task.id)},
            )

        run.add_done_callback(_discard)


class TaskProcessorHandle:
    """
    Control handle for a running task processor loop.

    The loop claims one task per tick while fewer than max_concurrent
    dispatches are in flight, then sleeps poll_interval_ms (or until
    stop() is called).
    """

    def __init__(
        self,
        executor: TaskExecutor,
        poll_interval_ms: int,
        max_concurrent: int,
    ) -> None:
        self._executor = executor
        self.poll_interval_ms = poll_interval_ms
        self.max_concurrent = max_concurrent
        self._stop_event = asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()
        self._loop_task = asyncio.create_task(self._run(), name="task-processor")

        logger.info(
            f"{__name__}:start_task_processor - Started (poll {poll_interval_ms}ms, "
            f"max_concurrent {max_concurrent})",
        )

    @property
    def active_count(self) -> int:
        return len(self._in_flight)

    @property
    def is_running(self) -> bool:
        return not self._loop_task.done()

    def stop(self) -> None:
        """Stop claiming new tasks; in-flight tasks keep running."""
        self._stop_event.set()

    async def wait(self) -> None:
        """Wait for the loop to exit and in-flight dispatches to settle."""
        await self._loop_task
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info(f"{__name__}:wait - Task processor stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            if len(self._in_flight) < self.max_concurrent:
                await self._claim_and_dispatch()

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval_ms / 1000
                )
            except asyncio.TimeoutError:
                pass

    async def _claim_and_dispatch(self) -> None:
        try:
            task = await self._executor.queue.claim_next_task()
        except Exception as e:
            logger.exception(
                f"{__name__}:_claim_and_dispatch - Claim failed: {type(e).__name__}: {e}",
            )
            return

        if task is None:
            return

        dispatch = asyncio.create_task(
            self._executor.execute_task(task), name=f"dispatch-{task.id}"
        )
        self._in_flight.add(dispatch)
        dispatch.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, dispatch: asyncio.Task) -> None:
        self._in_flight.discard(dispatch)
        if dispatch.cancelled():
            return
        error = dispatch.exception()
        if error is not None:
            logger.error(
                f"{__name__}:_on_dispatch_done - Dispatch {dispatch.get_name()} crashed: "
                f"{type(error).__name__}: {error}",
                exc_info=error,
            )


def _as_result(result: Any) -> dict[str, Any]:
    if result is None:
        return {}
    if isinstance(result, Mapping):
        return dict(result)
    return {"value": result}
