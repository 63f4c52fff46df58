"""API routers."""

from .documents import router as documents_router
from .health import router as health_router
from .tasks import router as tasks_router

__all__ = [
    "documents_router",
    "health_router",
    "tasks_router",
]
