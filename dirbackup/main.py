"""FastAPI application entry point: hosts the backup scheduler and its status API."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dirbackup.api.backup import router as backup_router
from dirbackup.api.health import VERSION
from dirbackup.api.health import router as health_router
from dirbackup.config import Settings
from dirbackup.exceptions import BackupError
from dirbackup.scheduler import BackupScheduler
from dirbackup.services.backup_service import BackupService
from dirbackup.services.cron_service import CronSchedule

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def ensure_output_dir(output_dir: Path) -> None:
    """Create the archive output directory if needed."""
    if output_dir.exists() and not output_dir.is_dir():
        msg = f"Output path exists but is not a directory: {output_dir}"
        raise NotADirectoryError(msg)

    if not output_dir.exists():
        logger.info("Creating backup output directory at %s", output_dir)
        output_dir.mkdir(parents=True)


def build_scheduler(settings: Settings) -> BackupScheduler:
    """Wire the backup service and its cron schedule from settings."""
    service = BackupService(settings)
    schedule = CronSchedule.parse(settings.cron_expression)
    return BackupScheduler(service, schedule, timezone=settings.timezone)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    settings.validate_runtime()
    logger.info(
        "Starting dirbackup (source=%s, output=%s, cron=%r)",
        settings.source_dir,
        settings.output_dir,
        settings.cron_expression,
    )

    try:
        ensure_output_dir(settings.output_dir)
    except Exception as exc:
        logger.critical(
            "Failed to initialize output directory at %s: %s.", settings.output_dir, exc
        )
        raise

    scheduler = build_scheduler(settings)
    app.state.scheduler = scheduler
    app.state.backup_service = scheduler.service
    scheduler.start(run_immediately=settings.run_on_startup)

    yield

    try:
        await scheduler.stop()
    except Exception as exc:
        logger.error("Error during scheduler shutdown: %s", exc, exc_info=True)

    logger.info("dirbackup stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="dirbackup",
        description="Scheduled incremental directory backups",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    app.include_router(health_router)
    app.include_router(backup_router)

    # Global exception handlers: run-level failures surface as 500s

    @app.exception_handler(BackupError)
    async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
        logger.error(
            "%s in %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Backup operation failed"},
        )

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Storage operation failed"},
        )

    return app


def cli_entry() -> None:
    """CLI entry point for running the service."""
    import uvicorn

    settings = Settings()
    try:
        settings.validate_runtime()
    except ValueError as exc:
        _configure_logging(settings.debug)
        logger.critical("%s", exc)
        sys.exit(1)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
    )
