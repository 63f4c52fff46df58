"""
Worker process entry point.

Builds the queue, handler registry and executor from settings, then runs
the continuous task processor until SIGINT/SIGTERM. On a signal the
worker stops claiming and waits for in-flight tasks to settle.

Dependencies: asyncio, signal, taskengine.core, taskengine.application
System role: Worker process lifecycle
"""

import asyncio
import signal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskengine.application.services import DocumentStore, TaskQueueService
from taskengine.boundary.db import get_async_session_factory
from taskengine.boundary.embeddings import EmbeddingClient, create_embedding_client
from taskengine.configs import Settings, get_settings
from taskengine.core.handlers import build_handler_registry
from taskengine.core.task_executor import TaskExecutor
from taskengine.observability import configure_logging, get_logger

logger = get_logger(__name__)


def build_executor(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    embedder: EmbeddingClient | None = None,
) -> TaskExecutor:
    """
    Wire a TaskExecutor with the built-in handlers.

    Args:
        settings: Application settings
        session_factory: Session factory (configured engine if None)
        embedder: Embedding client (Google Generative AI if None)

    Returns:
        TaskExecutor: Ready to process tasks
    """
    session_factory = session_factory or get_async_session_factory()
    queue = TaskQueueService(session_factory, settings=settings.task_queue)
    registry = build_handler_registry(
        DocumentStore(session_factory),
        embedder or create_embedding_client(),
        indexing_settings=settings.indexing,
    )
    logger.info(
        f"{__name__}:build_executor - Registered handlers: {', '.join(registry.task_types)}",
    )
    return TaskExecutor(queue, registry)


async def run_worker(
    executor: TaskExecutor | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Run the task processor until stopped.

    Args:
        executor: Executor to run (built from settings if None)
        stop_event: Event that stops the worker when set; SIGINT/SIGTERM
            set it when running on the main thread
    """
    executor = executor or build_executor(get_settings())
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not on the main thread, or a platform without signal support
            pass

    handle = executor.start_task_processor()
    logger.info(f"{__name__}:run_worker - Worker started")

    try:
        await stop_event.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    logger.info(
        f"{__name__}:run_worker - Stopping, waiting for {handle.active_count} in-flight task(s)",
    )
    handle.stop()
    await handle.wait()
    logger.info(f"{__name__}:run_worker - Worker stopped")


def main() -> None:
    configure_logging(get_settings().log_level)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
