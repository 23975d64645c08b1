"""Tree scanner: builds the two-level directory snapshot of the backup source."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dirbackup.exceptions import ScanError
from dirbackup.models.snapshot import DirectoryEntry
from dirbackup.services.datetime_service import from_timestamp

logger = logging.getLogger(__name__)


def has_utf8_name(name: str) -> bool:
    """Return False for names that are not valid UTF-8 on disk.

    Python decodes such names with surrogate escapes; they cannot be written
    to the JSON manifest.
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def collect_descendants(top_dir: Path, tz: str = "UTC") -> list[DirectoryEntry]:
    """Collect every directory below top_dir as a flat list.

    Names are ``/``-joined paths relative to top_dir. Symlinks are not
    directories here, and directories whose names are not valid UTF-8 are
    skipped together with everything below them. Raises OSError on the
    first directory that cannot be listed or stat'ed.
    """
    descendants: list[DirectoryEntry] = []

    def _raise(exc: OSError) -> None:
        raise exc

    for root, dirs, _files in os.walk(top_dir, onerror=_raise):
        root_path = Path(root)
        kept: list[str] = []
        for dirname in dirs:
            full = root_path / dirname
            if full.is_symlink():
                continue
            if not has_utf8_name(dirname):
                logger.warning("Skipping directory with a non UTF-8 name: %r", str(full))
                continue
            kept.append(dirname)
            stat = full.stat(follow_symlinks=False)
            descendants.append(
                DirectoryEntry(
                    name=full.relative_to(top_dir).as_posix(),
                    mod_time=from_timestamp(stat.st_mtime, tz),
                )
            )
        dirs[:] = kept
    return descendants


def scan_tree(source_dir: Path, tz: str = "UTC") -> list[DirectoryEntry]:
    """Snapshot the immediate subdirectories of source_dir and their descendants.

    Only the root listing is fatal (raises ScanError). A top-level directory
    that cannot be stat'ed or whose name is not valid UTF-8 is skipped; one
    whose descendants cannot be listed is kept with no children. Order
    follows filesystem enumeration.
    """
    try:
        with os.scandir(source_dir) as it:
            top_level = [item for item in it if item.is_dir(follow_symlinks=False)]
    except OSError as exc:
        msg = f"Error reading source directory {source_dir}: {exc}"
        raise ScanError(msg, path=source_dir) from exc

    snapshot: list[DirectoryEntry] = []
    for item in top_level:
        top_path = Path(item.path)
        if not has_utf8_name(item.name):
            logger.warning("Skipping top-level directory with a non UTF-8 name: %r", item.path)
            continue
        try:
            stat = item.stat(follow_symlinks=False)
        except OSError as exc:
            logger.warning("Could not stat top-level directory %s, skipping: %s", top_path, exc)
            continue

        entry = DirectoryEntry(name=item.name, mod_time=from_timestamp(stat.st_mtime, tz))
        try:
            entry.children = collect_descendants(top_path, tz)
        except OSError as exc:
            logger.warning(
                "Could not collect descendants of %s, recording it without children: %s",
                top_path,
                exc,
            )
        snapshot.append(entry)

    logger.debug("Scanned %d top-level directories under %s", len(snapshot), source_dir)
    return snapshot
