"""Application-level exception types.

Convention:
- Run-level errors (``ScanError``, ``ManifestLoadError``, ``ManifestSaveError``)
  abort the remainder of a single backup run. The scheduler logs them and
  retries on the next trigger; they never terminate the process.
- ``ManifestNotFoundError`` is not a failure: it signals the first run.
- ``ArchiveError`` is isolated to one top-level directory. The orchestrator
  captures it into that directory's outcome and carries on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class BackupError(Exception):
    """Base class for all backup errors; carries the offending path."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ScanError(BackupError):
    """Raised when the backup source root cannot be read."""


class ManifestError(BackupError):
    """Base class for manifest persistence errors."""


class ManifestNotFoundError(ManifestError):
    """Raised when no manifest has been written yet."""


class ManifestLoadError(ManifestError):
    """Raised when an existing manifest cannot be read or parsed."""


class ManifestSaveError(ManifestError):
    """Raised when the manifest cannot be written."""


class ArchiveError(BackupError):
    """Raised when a single directory cannot be archived."""
