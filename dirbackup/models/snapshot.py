"""Directory snapshot model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

DIRECTORY_KIND = "directory"


@dataclass
class DirectoryEntry:
    """One directory in a snapshot.

    Top-level entries carry a flat list of every descendant directory in
    ``children``, named by their path relative to the top-level directory.
    Descendant entries never carry children of their own.
    """

    name: str
    mod_time: datetime
    kind: str = DIRECTORY_KIND
    children: list[DirectoryEntry] = field(default_factory=list)
    archive_path: str | None = None
    needs_backup: bool = False

    def child_times(self) -> dict[str, datetime]:
        """Map each descendant name to its modification time."""
        return {child.name: child.mod_time for child in self.children}


# A snapshot is the ordered list of top-level entries; there is no root wrapper.
Snapshot = list[DirectoryEntry]


def find_entry(snapshot: Snapshot, name: str) -> DirectoryEntry | None:
    """Return the top-level entry with the given name, or None."""
    for entry in snapshot:
        if entry.name == name:
            return entry
    return None


def stamp_snapshot(snapshot: Snapshot, when: datetime) -> None:
    """Overwrite the modification time of every entry and descendant with ``when``."""
    for entry in snapshot:
        entry.mod_time = when
        for child in entry.children:
            child.mod_time = when
