"""
Dependency injection container.

Factory functions for FastAPI dependencies. Long-lived objects (session
factory, queue, executor) are built once per process and cached;
request-scoped services get the request's database session.

Dependencies: taskengine.configs, taskengine.application, taskengine.boundary
System role: DI container for service injection
"""

import secrets

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskengine.application.services import DocumentService, DocumentStore, TaskQueueService
from taskengine.boundary.db import get_async_db, get_async_session_factory
from taskengine.configs import Settings, get_settings
from taskengine.core.handlers import build_handler_registry
from taskengine.core.task_executor import TaskExecutor


class ServiceCache:
    """Container for cached service instances."""

    def __init__(self):
        self._session_factory = None
        self._task_queue = None
        self._executor = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get cached session factory."""
        if self._session_factory is None:
            self._session_factory = get_async_session_factory()
        return self._session_factory

    @property
    def task_queue(self) -> TaskQueueService:
        """Get cached task queue."""
        if self._task_queue is None:
            self._task_queue = TaskQueueService(
                self.session_factory, settings=get_settings().task_queue
            )
        return self._task_queue

    @property
    def executor(self) -> TaskExecutor:
        """Get cached executor with the built-in handlers registered."""
        if self._executor is None:
            from taskengine.boundary.embeddings import create_embedding_client

            registry = build_handler_registry(
                DocumentStore(self.session_factory),
                create_embedding_client(),
                indexing_settings=get_settings().indexing,
            )
            self._executor = TaskExecutor(self.task_queue, registry)
        return self._executor

    def clear(self) -> None:
        """Clear all cached instances."""
        self._session_factory = None
        self._task_queue = None
        self._executor = None


# Global service cache
_service_cache = ServiceCache()


def get_service_cache() -> ServiceCache:
    """Get service cache singleton."""
    return _service_cache


def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


def get_task_queue() -> TaskQueueService:
    """Get the process-wide task queue."""
    return get_service_cache().task_queue


def get_executor() -> TaskExecutor:
    """Get the process-wide task executor."""
    return get_service_cache().executor


def get_document_service(
    db: AsyncSession = Depends(get_async_db),
    queue: TaskQueueService = Depends(get_task_queue),
) -> DocumentService:
    """
    Get document service instance.

    Args:
        db: Async database session (injected via Depends)
        queue: Task queue (injected via Depends)

    Returns:
        DocumentService: Document service bound to the request session
    """
    return DocumentService(db=db, queue=queue)


def verify_cron_secret(
    authorization: str | None = Header(default=None),
    x_cron_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_settings_dependency),
) -> None:
    """
    Require the cron secret as a Bearer token or X-Cron-Secret header.

    Raises:
        HTTPException(500): No cron secret configured
        HTTPException(401): Missing or wrong secret
    """
    expected = settings.task_queue.cron_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron secret not configured",
        )

    provided = x_cron_secret
    if provided is None and authorization and authorization.startswith("Bearer "):
        provided = authorization.removeprefix("Bearer ")

    if provided is None or not secrets.compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
