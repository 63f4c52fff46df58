"""
Shared test fixtures and configuration for entire test suite.

Provides: File-backed SQLite task store, controllable clock, queue and
settings fixtures, fake embedders and a fake task context.
Dependencies: pytest, pytest-asyncio, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from taskengine.application.services import DocumentStore, TaskQueueService
from taskengine.boundary.db.create_tables import create_tables
from taskengine.boundary.db.connection import get_async_session_factory
from taskengine.configs.indexing import IndexingSettings
from taskengine.configs.task_queue import TaskQueueSettings


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeEmbedder:
    """
    Scripted embedding client.

    Each call pops the next scripted outcome: an exception instance is
    raised, anything else (or an exhausted script) returns a vector.
    """

    def __init__(self, outcomes=None, dimension: int = 4) -> None:
        self.outcomes = list(outcomes or [])
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
        return [float(len(text))] * self.dimension


class FakeTaskContext:
    """Records handler progress and exposes a settable cancellation flag."""

    def __init__(self, cancel_after_checks: int | None = None) -> None:
        self.progress: list[tuple[int, str | None]] = []
        self.messages: list[str] = []
        self.cancelled = False
        self._checks = 0
        self._cancel_after_checks = cancel_after_checks

    async def update_progress(self, progress: float, message: str | None = None) -> None:
        self.progress.append((round(progress), message))

    async def confirm_running(self) -> bool:
        return not self.cancelled

    def log(self, message: str) -> None:
        self.messages.append(message)

    def check_cancelled(self) -> bool:
        self._checks += 1
        if self._cancel_after_checks is not None and self._checks > self._cancel_after_checks:
            self.cancelled = True
        return self.cancelled


@pytest.fixture
async def engine(tmp_path):
    """
    File-backed SQLite engine with all tables created.

    NullPool gives every session its own connection, so concurrent
    claimers really race through the database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'taskengine.db'}",
        poolclass=NullPool,
    )
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_async_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue_settings() -> TaskQueueSettings:
    return TaskQueueSettings(
        default_max_retries=3,
        default_timeout_ms=5_000,
        backoff_base_seconds=2,
        backoff_max_seconds=300,
        poll_interval_ms=10,
        max_concurrent=2,
        batch_size=5,
        claim_attempts=5,
        cron_secret="test-secret",
    )


@pytest.fixture
def queue(session_factory, queue_settings, clock) -> TaskQueueService:
    return TaskQueueService(session_factory, settings=queue_settings, clock=clock)


@pytest.fixture
def indexing_settings() -> IndexingSettings:
    return IndexingSettings(
        chunk_size=1000,
        chunk_overlap=100,
        rate_limit_backoff_seconds=0,
        max_embedding_errors=3,
        error_retry_delay_seconds=0,
        progress_interval=5,
    )


@pytest.fixture
def document_store(session_factory) -> DocumentStore:
    return DocumentStore(session_factory)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def make_embedder():
    """Factory for scripted embedders: make_embedder([RateLimitError(...), None])."""
    return FakeEmbedder


@pytest.fixture
def make_context():
    """Factory for fake task contexts."""
    return FakeTaskContext
