"""Archive service: compresses one directory tree into a zip file."""

from __future__ import annotations

import contextlib
import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dirbackup.exceptions import ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"
_PARTIAL_SUFFIX = ".partial"


@dataclass
class ArchiveStats:
    """Entry counts of a finished archive."""

    files: int = 0
    directories: int = 0

    @property
    def entries(self) -> int:
        return self.files + self.directories


def archive_name(directory_name: str) -> str:
    """Return the archive file name for a top-level directory."""
    return f"{directory_name}{ARCHIVE_SUFFIX}"


def normalize_compression_level(value: Any) -> int | None:
    """Return a deflate level in 0..9, or None for the zlib default."""
    if value is None or isinstance(value, bool):
        return None
    try:
        level = int(value)
    except (TypeError, ValueError):
        return None
    if 0 <= level <= 9:
        return level
    return None


def _write_tree(zf: zipfile.ZipFile, source_dir: Path) -> ArchiveStats:
    stats = ArchiveStats()

    def _raise(exc: OSError) -> None:
        raise exc

    for root, dirs, files in os.walk(source_dir, onerror=_raise):
        root_path = Path(root)
        # ZipFile.write stores directories (trailing "/") and deflates files
        # at the archive's compresslevel.
        for dirname in dirs:
            full = root_path / dirname
            zf.write(full, arcname=full.relative_to(source_dir).as_posix())
            stats.directories += 1
        for filename in files:
            full = root_path / filename
            zf.write(full, arcname=full.relative_to(source_dir).as_posix())
            stats.files += 1

    return stats


def zip_directory(
    source_dir: Path,
    dest_path: Path,
    compression_level: int | None = None,
) -> ArchiveStats:
    """Archive every file and directory under source_dir into dest_path.

    Entry names are relative to source_dir (the directory itself is not an
    entry). Directories are stored with a trailing ``/``; files are deflated
    at compression_level. The archive is built next to dest_path and renamed
    into place only when complete, so a failure leaves any previous archive
    untouched. Raises ArchiveError, including for names zipfile cannot
    encode.
    """
    level = normalize_compression_level(compression_level)
    if not source_dir.is_dir():
        msg = f"Source directory {source_dir} does not exist"
        raise ArchiveError(msg, path=source_dir)

    partial_path = dest_path.with_name(dest_path.name + _PARTIAL_SUFFIX)
    logger.info("Zipping contents of %s to %s (level=%s)", source_dir, dest_path, level)

    try:
        zf = zipfile.ZipFile(
            partial_path,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=level,
            strict_timestamps=False,
        )
    except OSError as exc:
        msg = f"Failed to create zip file {dest_path}: {exc}"
        raise ArchiveError(msg, path=dest_path) from exc

    try:
        with zf:
            stats = _write_tree(zf, source_dir)
        os.replace(partial_path, dest_path)
    except (OSError, ValueError) as exc:
        with contextlib.suppress(OSError):
            partial_path.unlink()
        msg = f"Failed to archive {source_dir}: {exc}"
        raise ArchiveError(msg, path=source_dir) from exc

    logger.debug(
        "Archived %s: %d files, %d directories", source_dir, stats.files, stats.directories
    )
    return stats
