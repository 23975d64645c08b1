"""Shared test fixtures for dirbackup."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from dirbackup.config import Settings
from dirbackup.main import build_scheduler, create_app, ensure_output_dir
from dirbackup.services.backup_service import BackupService
from tests._tree_helpers import freeze_tree

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (output dir,
    service and scheduler wiring) because ASGITransport does not trigger it.
    The scheduling loop itself is not started.
    """
    app = create_app(settings)
    ensure_output_dir(settings.output_dir)
    scheduler = build_scheduler(settings)
    app.state.scheduler = scheduler
    app.state.backup_service = scheduler.service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await scheduler.stop()


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Create a source tree with three top-level directories and a stray file.

    source/
      alpha/  a.txt, childA/grandchild1/g.txt, childB/
      beta/   b.txt
      gamma/  (empty)
      loose.txt
    """
    source = tmp_path / "source"
    (source / "alpha" / "childA" / "grandchild1").mkdir(parents=True)
    (source / "alpha" / "childB").mkdir()
    (source / "alpha" / "a.txt").write_text("alpha file\n")
    (source / "alpha" / "childA" / "grandchild1" / "g.txt").write_text("grandchild\n" * 50)
    (source / "beta").mkdir()
    (source / "beta" / "b.txt").write_text("beta file\n")
    (source / "gamma").mkdir()
    (source / "loose.txt").write_text("not a directory\n")
    freeze_tree(source)
    return source


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "backups"
    out.mkdir()
    return out


@pytest.fixture
def test_settings(source_dir: Path, output_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    return Settings(
        _env_file=None,
        debug=True,
        source_dir=source_dir,
        output_dir=output_dir,
        timezone="UTC",
    )


@pytest.fixture
def backup_service(test_settings: Settings) -> BackupService:
    return BackupService(test_settings)
