"""Manifest store: loads and persists the snapshot from the previous run."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from dirbackup.exceptions import ManifestLoadError, ManifestNotFoundError, ManifestSaveError
from dirbackup.models.snapshot import DirectoryEntry
from dirbackup.schemas.manifest import dump_manifest, parse_manifest

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILENAME = "manifest.json"


class ManifestStore:
    """Reads and writes the JSON manifest in the backup output directory."""

    def __init__(self, output_dir: Path, filename: str = DEFAULT_MANIFEST_FILENAME) -> None:
        self.output_dir = output_dir
        self.filename = filename

    @property
    def path(self) -> Path:
        return self.output_dir / self.filename

    def load(self) -> list[DirectoryEntry]:
        """Load the persisted snapshot.

        Raises ManifestNotFoundError when no manifest has been written yet and
        ManifestLoadError for any other read or parse failure.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as exc:
            msg = f"No manifest at {self.path}"
            raise ManifestNotFoundError(msg, path=self.path) from exc
        except OSError as exc:
            msg = f"Failed to read manifest {self.path}: {exc}"
            raise ManifestLoadError(msg, path=self.path) from exc

        try:
            return parse_manifest(raw)
        except ValidationError as exc:
            msg = f"Manifest {self.path} is malformed: {exc.error_count()} validation error(s)"
            raise ManifestLoadError(msg, path=self.path) from exc

    def save(self, snapshot: list[DirectoryEntry]) -> None:
        """Persist the snapshot, replacing any previous manifest atomically.

        The manifest is written to a temporary file in the same directory and
        renamed over the target, so a crash never leaves a truncated manifest.
        """
        tmp_name: str | None = None
        try:
            data = dump_manifest(snapshot) + b"\n"
            fd, tmp_name = tempfile.mkstemp(
                dir=self.output_dir, prefix=f".{self.filename}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, ValueError) as exc:
            # ValueError covers pydantic ValidationError from serialization.
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            msg = f"Failed to write manifest {self.path}: {exc}"
            raise ManifestSaveError(msg, path=self.path) from exc

        logger.debug("Wrote manifest with %d entries to %s", len(snapshot), self.path)
