"""Backup API endpoints: status, manual trigger, dry-run plan, manifest."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from dirbackup.api.deps import get_backup_service, get_scheduler
from dirbackup.exceptions import ManifestNotFoundError
from dirbackup.scheduler import BackupScheduler, RunInProgressError
from dirbackup.schemas.manifest import ManifestEntry
from dirbackup.services.backup_service import BackupReport, BackupService
from dirbackup.services.datetime_service import format_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/backup", tags=["backup"])


# ── Schemas ──────────────────────────────────────────


class BackupReportResponse(BaseModel):
    """Summary of one backup run."""

    started_at: str
    finished_at: str | None = None
    first_run: bool
    scanned: int
    processed: int
    archived: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    unchanged: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    summary: str

    @classmethod
    def from_report(cls, report: BackupReport) -> BackupReportResponse:
        return cls(
            started_at=format_iso(report.started_at),
            finished_at=format_iso(report.finished_at) if report.finished_at else None,
            first_run=report.first_run,
            scanned=report.scanned,
            processed=report.processed,
            archived=report.archived,
            failed=report.failed,
            unchanged=report.unchanged,
            removed=report.removed,
            summary=report.summary(),
        )


class BackupStatusResponse(BaseModel):
    """Scheduler state and the outcome of the most recent run."""

    run_in_progress: bool
    next_run_at: str | None = None
    last_report: BackupReportResponse | None = None
    last_error: str | None = None


class BackupPlanResponse(BaseModel):
    """Directories the next run would archive, with the reason for each."""

    to_archive: list[str]
    unchanged: list[str]
    removed: list[str]
    reasons: dict[str, str]


# ── Endpoints ────────────────────────────────────────


@router.get("/status", response_model=BackupStatusResponse)
async def backup_status(
    scheduler: Annotated[BackupScheduler, Depends(get_scheduler)],
) -> BackupStatusResponse:
    """Report scheduler state and the last run."""
    last = scheduler.last_report
    return BackupStatusResponse(
        run_in_progress=scheduler.run_in_progress,
        next_run_at=format_iso(scheduler.next_run_at) if scheduler.next_run_at else None,
        last_report=BackupReportResponse.from_report(last) if last else None,
        last_error=scheduler.last_error,
    )


@router.post("/run", response_model=BackupReportResponse)
async def run_backup(
    scheduler: Annotated[BackupScheduler, Depends(get_scheduler)],
) -> BackupReportResponse:
    """Run a backup immediately."""
    try:
        report = await scheduler.run_now()
    except RunInProgressError as exc:
        raise HTTPException(status_code=409, detail="A backup run is already in progress") from exc
    if report is None:
        raise HTTPException(status_code=500, detail="Backup run failed")
    return BackupReportResponse.from_report(report)


@router.get("/plan", response_model=BackupPlanResponse)
async def backup_plan(
    service: Annotated[BackupService, Depends(get_backup_service)],
) -> BackupPlanResponse:
    """Show which directories the next run would archive, without writing anything."""
    plan = await service.plan()
    return BackupPlanResponse(
        to_archive=plan.to_archive,
        unchanged=plan.unchanged,
        removed=plan.removed,
        reasons={name: str(reason) for name, reason in plan.reasons.items()},
    )


@router.get(
    "/manifest",
    response_model=list[ManifestEntry],
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_manifest(
    service: Annotated[BackupService, Depends(get_backup_service)],
) -> list[ManifestEntry]:
    """Return the manifest persisted by the last run."""
    try:
        snapshot = await asyncio.to_thread(service.store.load)
    except ManifestNotFoundError as exc:
        raise HTTPException(status_code=404, detail="No manifest has been written yet") from exc
    return [ManifestEntry.from_entry(entry) for entry in snapshot]
