"""
Handler registry.

Process-local mapping from task type to handler coroutine function.
Built explicitly at startup and handed to the executor, so each process
(and each test) owns exactly the handler set it constructed.

Dependencies: taskengine.core.task_context
System role: Task type → handler dispatch table
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Mapping

if TYPE_CHECKING:
    from taskengine.boundary.db.models import TaskModel
    from taskengine.core.task_context import TaskContext

TaskHandler = Callable[["TaskModel", "TaskContext"], Awaitable[Mapping[str, Any] | None]]


class HandlerRegistry:
    """In-memory task type → handler mapping."""

    def __init__(self, handlers: Mapping[str, TaskHandler] | None = None) -> None:
        self._handlers: dict[str, TaskHandler] = {}
        for task_type, handler in (handlers or {}).items():
            self.register(task_type, handler)

    def register(self, task_type: str, handler: TaskHandler) -> None:
        """
        Register a handler for a task type.

        Args:
            task_type: Registry key stored on TaskModel.type
            handler: Async callable (task, context) -> result dict

        Raises:
            ValueError: Empty task type or a handler is already registered
        """
        if not task_type:
            raise ValueError("task_type cannot be empty")
        if task_type in self._handlers:
            raise ValueError(f"Handler already registered for task type: {task_type}")
        self._handlers[task_type] = handler

    def lookup(self, task_type: str) -> TaskHandler | None:
        """Return the handler for a task type, or None."""
        return self._handlers.get(task_type)

    @property
    def task_types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self.task_types)

    def __len__(self) -> int:
        return len(self._handlers)
