"""Tests for the backup scheduler."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from dirbackup.exceptions import ManifestLoadError, ScanError
from dirbackup.scheduler import BackupScheduler, RunInProgressError
from dirbackup.services.backup_service import BackupReport
from dirbackup.services.cron_service import CronSchedule
from dirbackup.services.datetime_service import now_in

if TYPE_CHECKING:
    from dirbackup.services.backup_service import BackupService


class _FakeService:
    """Stands in for BackupService; optionally blocks until released."""

    def __init__(self, error: Exception | None = None, block: bool = False) -> None:
        self.error = error
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def run(self) -> BackupReport:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return BackupReport(started_at=now_in(), finished_at=now_in(), scanned=1)


def _scheduler(service: _FakeService, expression: str = "0 15 * * * *") -> BackupScheduler:
    return BackupScheduler(
        service,  # type: ignore[arg-type]
        CronSchedule.parse(expression),
        timezone="UTC",
    )


class TestTrigger:
    async def test_successful_run_records_report(self) -> None:
        scheduler = _scheduler(_FakeService())
        report = await scheduler.trigger()
        assert report is not None
        assert scheduler.last_report is report
        assert scheduler.last_error is None

    async def test_run_error_is_logged_and_swallowed(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        scheduler = _scheduler(_FakeService(error=ScanError("Failed to read source directory")))
        with caplog.at_level("ERROR", logger="dirbackup.scheduler"):
            report = await scheduler.trigger()
        assert report is None
        assert scheduler.last_error == "Failed to read source directory"
        assert "ERROR when doing backup" in caplog.text

    async def test_next_trigger_retries_after_error(self) -> None:
        service = _FakeService(error=ManifestLoadError("bad manifest"))
        scheduler = _scheduler(service)
        await scheduler.trigger()
        service.error = None

        report = await scheduler.trigger()

        assert report is not None
        assert scheduler.last_error is None
        assert service.calls == 2

    async def test_unexpected_error_is_recorded_and_swallowed(self) -> None:
        service = _FakeService(error=ValueError("unexpected failure"))
        scheduler = _scheduler(service)

        assert await scheduler.trigger() is None
        assert scheduler.last_error == "unexpected failure"
        assert scheduler.run_in_progress is False

        service.error = None
        assert await scheduler.trigger() is not None
        assert scheduler.last_error is None

    async def test_scheduled_run_error_does_not_escape_task(self) -> None:
        service = _FakeService(
            error=UnicodeEncodeError("utf-8", "bad\udcff", 3, 4, "surrogates not allowed")
        )
        scheduler = _scheduler(service)

        scheduler.start(run_immediately=True)
        (task,) = scheduler._runs
        await scheduler.stop()

        assert task.exception() is None
        assert task.result() is None
        assert scheduler.last_error is not None
        assert "surrogates not allowed" in scheduler.last_error

    async def test_overlapping_trigger_is_skipped(self) -> None:
        service = _FakeService(block=True)
        scheduler = _scheduler(service)

        first = asyncio.create_task(scheduler.trigger())
        await service.started.wait()
        assert scheduler.run_in_progress is True

        assert await scheduler.trigger() is None
        service.release.set()
        assert await first is not None
        assert service.calls == 1
        assert scheduler.run_in_progress is False

    async def test_run_now_raises_when_busy(self) -> None:
        service = _FakeService(block=True)
        scheduler = _scheduler(service)

        first = asyncio.create_task(scheduler.run_now())
        await service.started.wait()
        with pytest.raises(RunInProgressError):
            await scheduler.run_now()
        service.release.set()
        await first


class TestLifecycle:
    async def test_start_and_stop(self) -> None:
        scheduler = _scheduler(_FakeService())
        assert scheduler.running is False

        scheduler.start()
        await asyncio.sleep(0)
        assert scheduler.running is True
        assert scheduler.next_run_at is not None
        assert scheduler.next_run_at > now_in()
        assert scheduler.next_run_at.minute == 15

        await scheduler.stop()
        assert scheduler.running is False
        assert scheduler.next_run_at is None

    async def test_run_immediately(self) -> None:
        service = _FakeService()
        scheduler = _scheduler(service)

        scheduler.start(run_immediately=True)
        await scheduler.stop()

        assert service.calls == 1
        assert scheduler.last_report is not None

    async def test_stop_waits_for_in_flight_run(self) -> None:
        service = _FakeService(block=True)
        scheduler = _scheduler(service)
        scheduler.start(run_immediately=True)
        await service.started.wait()

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()

        service.release.set()
        await stopping
        assert scheduler.last_report is not None

    async def test_schedule_fires_run(self) -> None:
        service = _FakeService()
        scheduler = _scheduler(service, "* * * * * *")

        scheduler.start()
        for _ in range(40):
            await asyncio.sleep(0.1)
            if service.calls:
                break
        await scheduler.stop()

        assert service.calls >= 1

    async def test_start_twice_keeps_one_loop(self) -> None:
        scheduler = _scheduler(_FakeService())
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.stop()


async def test_scheduler_runs_real_service(backup_service: BackupService) -> None:
    scheduler = BackupScheduler(backup_service, CronSchedule.parse("0 15 * * * *"))
    report = await scheduler.trigger()
    assert report is not None
    assert report.first_run is True
