"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dirbackup.api.deps import get_scheduler
from dirbackup.scheduler import BackupScheduler
from dirbackup.services.datetime_service import format_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    scheduler_running: bool
    next_run_at: str | None = None


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    scheduler: Annotated[BackupScheduler, Depends(get_scheduler)],
) -> HealthResponse:
    """Health check endpoint for monitoring and container orchestrators."""
    running = scheduler.running
    if not running:
        logger.warning("Health check: backup scheduler is not running")
    return HealthResponse(
        status="ok" if running else "degraded",
        version=VERSION,
        scheduler_running=running,
        next_run_at=format_iso(scheduler.next_run_at) if scheduler.next_run_at else None,
    )
