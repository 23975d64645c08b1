"""Shared API dependencies: backup service, scheduler."""

from __future__ import annotations

from fastapi import Request

from dirbackup.scheduler import BackupScheduler
from dirbackup.services.backup_service import BackupService


def get_backup_service(request: Request) -> BackupService:
    """Get the backup service from app state."""
    service: BackupService = request.app.state.backup_service
    return service


def get_scheduler(request: Request) -> BackupScheduler:
    """Get the backup scheduler from app state."""
    scheduler: BackupScheduler = request.app.state.scheduler
    return scheduler
