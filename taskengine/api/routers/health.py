"""
Health check API endpoints.

Routes: GET /health, GET /health/db

Dependencies: taskengine.boundary
System role: Health check HTTP API
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskengine.boundary.db import get_async_db

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    message: str


router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check."""
    return HealthResponse(status="healthy", message="Server Healthy")


@router.get("/db", response_model=HealthResponse)
async def health_check_db(db: AsyncSession = Depends(get_async_db)) -> HealthResponse:
    """Database health check; the task store is the coordination medium."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"{__name__}:health_check_db - Database unreachable: {e}")
        raise HTTPException(status_code=503, detail="Database unreachable")
    return HealthResponse(status="healthy", message="Database connection OK")
