"""Backup scheduler: fires backup runs on a cron schedule.

Overlapping runs are never queued: a trigger that fires while a run is still
in progress is skipped. Run-level errors are logged and the next trigger
retries; they never stop the scheduler.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from dirbackup.services.datetime_service import now_in

if TYPE_CHECKING:
    from datetime import datetime

    from dirbackup.services.backup_service import BackupReport, BackupService
    from dirbackup.services.cron_service import CronSchedule

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """Raised by ``run_now`` when a run is already executing."""


class BackupScheduler:
    """Runs a BackupService whenever its cron schedule fires."""

    def __init__(
        self,
        service: BackupService,
        schedule: CronSchedule,
        timezone: str = "UTC",
    ) -> None:
        self.service = service
        self.schedule = schedule
        self.timezone = timezone
        self.last_report: BackupReport | None = None
        self.last_error: str | None = None
        self.next_run_at: datetime | None = None
        self._run_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[BackupReport | None]] = set()

    @property
    def running(self) -> bool:
        """Whether the scheduling loop is active."""
        return self._task is not None and not self._task.done()

    @property
    def run_in_progress(self) -> bool:
        return self._run_lock.locked()

    async def _execute(self) -> BackupReport | None:
        async with self._run_lock:
            try:
                report = await self.service.run()
            except Exception as exc:
                self.last_error = str(exc) or type(exc).__name__
                logger.error("ERROR when doing backup: %s", exc, exc_info=exc)
                return None
            self.last_report = report
            self.last_error = None
            return report

    async def trigger(self) -> BackupReport | None:
        """Run a backup now unless one is already in progress.

        Returns the report, or None when the run was skipped or failed
        (see ``last_error``).
        """
        if self._run_lock.locked():
            logger.warning("Previous backup still running, skipping this trigger")
            return None
        return await self._execute()

    async def run_now(self) -> BackupReport | None:
        """Like ``trigger`` but raises RunInProgressError instead of skipping silently."""
        if self._run_lock.locked():
            raise RunInProgressError("A backup run is already in progress")
        return await self._execute()

    async def _loop(self) -> None:
        last_fire: datetime | None = None
        while True:
            now = now_in(self.timezone)
            # Never fire the same instant twice if the clock lags the sleep.
            reference = max(now, last_fire) if last_fire is not None else now
            self.next_run_at = self.schedule.next_after(reference)
            delay = (self.next_run_at - now).total_seconds()
            logger.debug("Next backup at %s (in %.0fs)", self.next_run_at, delay)
            await asyncio.sleep(max(delay, 0))
            # Runs in its own task so a long run does not delay the next fire time;
            # overlapping fires are skipped by trigger().
            last_fire = self.next_run_at
            self._spawn_run()

    def _spawn_run(self) -> None:
        task = asyncio.create_task(self.trigger())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    def start(self, run_immediately: bool = False) -> None:
        """Start the scheduling loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="backup-scheduler")
        if run_immediately:
            self._spawn_run()
        logger.info("Backup scheduler started (cron=%r)", self.schedule.expression)

    async def stop(self) -> None:
        """Stop the scheduling loop and wait for any in-flight run to finish."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)
        self.next_run_at = None
        logger.info("Backup scheduler stopped")
