"""In-memory models for dirbackup."""

from dirbackup.models.snapshot import (
    DIRECTORY_KIND,
    DirectoryEntry,
    Snapshot,
    find_entry,
    stamp_snapshot,
)

__all__ = [
    "DIRECTORY_KIND",
    "DirectoryEntry",
    "Snapshot",
    "find_entry",
    "stamp_snapshot",
]
