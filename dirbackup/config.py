"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pendulum
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CRON_EXPRESSION = "0 15 * * * *"


class Settings(BaseSettings):
    """dirbackup service settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Paths
    source_dir: Path = Path("/data")
    output_dir: Path = Path("/backups")
    manifest_filename: str = "manifest.json"

    # Archiving
    compression_level: int | None = None

    # Scheduling
    cron_expression: str = DEFAULT_CRON_EXPRESSION
    timezone: str = "Asia/Jakarta"
    run_on_startup: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("compression_level", mode="before")
    @classmethod
    def _lenient_compression_level(cls, value: Any) -> int | None:
        """Fall back to the zlib default for blank, non-numeric, or out-of-range levels."""
        if value is None:
            return None
        try:
            level = int(str(value).strip())
        except ValueError:
            return None
        if 0 <= level <= 9:
            return level
        return None

    @field_validator("cron_expression", mode="before")
    @classmethod
    def _default_blank_cron(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_CRON_EXPRESSION
        return value

    @property
    def manifest_path(self) -> Path:
        return self.output_dir / self.manifest_filename

    def validate_runtime(self) -> None:
        """Validate settings that would make every scheduled run fail."""
        from dirbackup.services.cron_service import CronSchedule

        violations: list[str] = []
        try:
            CronSchedule.parse(self.cron_expression)
        except ValueError as exc:
            violations.append(f"CRON_EXPRESSION is invalid: {exc}")
        try:
            pendulum.timezone(self.timezone)
        except (KeyError, ValueError):
            violations.append(f"TIMEZONE is not a known timezone: {self.timezone!r}")
        if not self.manifest_filename or "/" in self.manifest_filename:
            violations.append("MANIFEST_FILENAME must be a plain file name")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid configuration: {joined}")
