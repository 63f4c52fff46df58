"""
Exception hierarchy for the task engine.

Provides layered exception structure for queue, executor, and handler errors.
All exceptions include context for observability and debugging. Errors that
must not be retried by the queue carry a failure kind the executor records.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the application
"""

import enum
from typing import Any


class FailureKind(str, enum.Enum):
    """
    Why a task attempt failed.

    ERROR: Handler raised; eligible for queue-level retry
    TIMEOUT: Attempt exceeded its wall-clock budget
    CONFIGURATION: No handler registered for the task type
    CONTENT: Input can never succeed (empty or missing document)
    """

    ERROR = "error"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    CONTENT = "content"


class TaskEngineException(Exception):
    """Base exception for all task engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return the message; details travel separately for logging."""
        return self.message


class ValidationError(TaskEngineException):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class TaskNotFoundError(TaskEngineException):
    """Raised when a task cannot be found."""

    def __init__(self, task_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["task_id"] = task_id
        super().__init__(f"Task not found: {task_id}", details)


class NonRetryableTaskError(TaskEngineException):
    """
    Raised by handlers (or the executor) for failures a retry cannot fix.

    The executor fails the task permanently and records failure_kind.
    """

    failure_kind: FailureKind = FailureKind.CONTENT


class HandlerNotRegisteredError(NonRetryableTaskError):
    """Raised when no handler is registered for a task type."""

    failure_kind = FailureKind.CONFIGURATION

    def __init__(self, task_type: str) -> None:
        super().__init__(
            f"No handler registered for task type: {task_type}",
            {"task_type": task_type},
        )


class ContentError(NonRetryableTaskError):
    """Base exception for document content that cannot be indexed."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize content error.

        Args:
            message: Error message
            document_id: ID of the offending document
            details: Additional context
        """
        details = details or {}
        if document_id:
            details["document_id"] = document_id
        super().__init__(message, details)


class EmptyDocumentError(ContentError):
    """Raised when a document has no indexable text."""

    pass


class DocumentNotFoundError(ContentError):
    """Raised when the document referenced by a task no longer exists."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} not found", document_id)


class InvalidPayloadError(ContentError):
    """Raised when a task payload does not match the handler's schema."""

    pass


class EmbeddingError(TaskEngineException):
    """Raised when the embedding service fails for a chunk."""

    pass


class RateLimitError(EmbeddingError):
    """Raised when the embedding service throttles the caller."""

    pass


class EmbeddingBudgetExceededError(TaskEngineException):
    """Raised when a handler exhausts its non-rate-limit embedding error budget."""

    def __init__(self, error_count: int, last_error: str, document_id: str | None = None) -> None:
        details: dict[str, Any] = {"error_count": error_count}
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            f"Too many embedding errors ({error_count}). Last error: {last_error}",
            details,
        )
        self.error_count = error_count


class TaskTimeoutError(TaskEngineException):
    """Raised (and recorded) when a task attempt exceeds its timeout."""

    failure_kind = FailureKind.TIMEOUT

    def __init__(self, task_id: str, timeout_ms: int) -> None:
        super().__init__(
            f"Task timed out after {timeout_ms}ms",
            {"task_id": task_id, "timeout_ms": timeout_ms},
        )
