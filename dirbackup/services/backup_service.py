"""Backup orchestration: scan, diff, archive changed directories, persist the manifest."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dirbackup.exceptions import ArchiveError, ManifestNotFoundError
from dirbackup.filesystem.manifest_store import ManifestStore
from dirbackup.filesystem.tree_scanner import scan_tree
from dirbackup.models.snapshot import DirectoryEntry, find_entry, stamp_snapshot
from dirbackup.services.archive_service import archive_name, zip_directory
from dirbackup.services.change_service import ChangePlan, ChangeReason, detect_changes
from dirbackup.services.datetime_service import now_in

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from dirbackup.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ArchiveOutcome:
    """Result of archiving one top-level directory."""

    name: str
    archive_path: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.archive_path is not None


@dataclass
class BackupReport:
    """Summary of one backup run."""

    started_at: datetime
    finished_at: datetime | None = None
    first_run: bool = False
    scanned: int = 0
    archived: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    unchanged: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Directories archived or attempted."""
        return len(self.archived) + len(self.failed)

    def summary(self) -> str:
        if self.first_run:
            return f"First manifest created ({self.scanned} directories scanned)"
        if self.processed == 0:
            return f"There's nothing to backup ({self.scanned} directories scanned)"
        return (
            f"Total processed backups: {self.processed} "
            f"({len(self.archived)} archived, {len(self.failed)} failed, "
            f"{self.scanned} directories scanned)"
        )


class BackupService:
    """Runs incremental backups of the immediate subdirectories of the source root."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.store = ManifestStore(settings.output_dir, settings.manifest_filename)

    @property
    def source_dir(self) -> Path:
        return self.settings.source_dir

    @property
    def output_dir(self) -> Path:
        return self.settings.output_dir

    def _archive_one(self, name: str) -> ArchiveOutcome:
        """Archive one top-level directory; errors become part of the outcome."""
        source = self.source_dir / name
        dest = self.output_dir / archive_name(name)
        try:
            zip_directory(source, dest, self.settings.compression_level)
        except ArchiveError as exc:
            logger.error("Failed to zip directory %s: %s", source, exc)
            return ArchiveOutcome(name=name, error=str(exc))
        except Exception as exc:
            # Any other failure still yields an outcome for this directory.
            logger.error("Unexpected error zipping %s: %s", source, exc, exc_info=exc)
            return ArchiveOutcome(name=name, error=f"{type(exc).__name__}: {exc}")
        logger.info("Successfully zipped %s to %s", source, dest)
        return ArchiveOutcome(name=name, archive_path=str(dest))

    async def archive_all(self, names: list[str]) -> list[ArchiveOutcome]:
        """Archive every named directory concurrently and wait for all of them.

        One worker thread per directory, no fan-out limit. Outcomes come back
        in the order of names.
        """
        if not names:
            return []
        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="archive") as pool:
            tasks = [loop.run_in_executor(pool, self._archive_one, name) for name in names]
            return list(await asyncio.gather(*tasks))

    async def _scan(self) -> list[DirectoryEntry]:
        return await asyncio.to_thread(scan_tree, self.source_dir, self.settings.timezone)

    async def _first_run(self, snapshot: list[DirectoryEntry], report: BackupReport) -> None:
        stamp_snapshot(snapshot, now_in(self.settings.timezone))
        await asyncio.to_thread(self.store.save, snapshot)
        report.first_run = True
        logger.info("First manifest created at %s", self.store.path)

    async def run(self) -> BackupReport:
        """Run one incremental backup.

        Raises ScanError, ManifestLoadError, or ManifestSaveError on run-level
        failures. Per-directory archive failures are recorded in the report.
        """
        report = BackupReport(started_at=now_in(self.settings.timezone))
        logger.info("Backup running at %s", report.started_at)

        snapshot = await self._scan()
        report.scanned = len(snapshot)

        try:
            previous = await asyncio.to_thread(self.store.load)
        except ManifestNotFoundError:
            await self._first_run(snapshot, report)
            report.finished_at = now_in(self.settings.timezone)
            return report

        plan = detect_changes(snapshot, previous)
        report.unchanged = list(plan.unchanged)
        report.removed = list(plan.removed)

        outcomes = await self.archive_all(plan.to_archive)

        # All archive tasks have finished; fold results back single-threadedly.
        for outcome in outcomes:
            entry = find_entry(snapshot, outcome.name)
            if entry is None:
                continue
            if outcome.succeeded:
                entry.archive_path = outcome.archive_path
                report.archived.append(outcome.name)
            else:
                report.failed[outcome.name] = outcome.error or "unknown error"

        await asyncio.to_thread(self.store.save, snapshot)

        report.finished_at = now_in(self.settings.timezone)
        logger.info("%s", report.summary())
        for name, error in report.failed.items():
            logger.warning("Directory %s was not backed up: %s", name, error)
        return report

    async def plan(self) -> ChangePlan:
        """Compute which directories the next run would archive, without writing anything."""
        snapshot = await self._scan()
        try:
            previous = await asyncio.to_thread(self.store.load)
        except ManifestNotFoundError:
            return ChangePlan(
                to_archive=[entry.name for entry in snapshot],
                reasons={entry.name: ChangeReason.NEW_DIRECTORY for entry in snapshot},
            )
        return detect_changes(snapshot, previous)
