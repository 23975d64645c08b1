"""Change detection: decides which top-level directories need re-archiving."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from dirbackup.models.snapshot import DirectoryEntry

logger = logging.getLogger(__name__)


class ChangeReason(StrEnum):
    """Why a top-level directory was (or was not) flagged for backup."""

    NEW_DIRECTORY = "new_directory"
    MOD_TIME_CHANGED = "mod_time_changed"
    CHILDREN_CHANGED = "children_changed"
    NO_CHANGE = "no_change"


@dataclass
class ChangePlan:
    """The computed backup plan for one run."""

    to_archive: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    reasons: dict[str, ChangeReason] = field(default_factory=dict)


def children_match(current: DirectoryEntry, previous: DirectoryEntry) -> bool:
    """Return True when both entries have the same descendants with the same mod times.

    A renamed descendant changes the name set even if its own mod time is
    untouched, so it counts as a difference.
    """
    if len(current.children) != len(previous.children):
        return False
    return current.child_times() == previous.child_times()


def compare_entry(current: DirectoryEntry, previous: DirectoryEntry | None) -> ChangeReason:
    """Classify a single top-level entry against its previous state."""
    if previous is None:
        return ChangeReason.NEW_DIRECTORY
    if current.mod_time != previous.mod_time:
        return ChangeReason.MOD_TIME_CHANGED
    if not children_match(current, previous):
        return ChangeReason.CHILDREN_CHANGED
    return ChangeReason.NO_CHANGE


def detect_changes(
    current: list[DirectoryEntry],
    previous: list[DirectoryEntry],
) -> ChangePlan:
    """Mark each current entry's ``needs_backup`` by comparing it with the previous snapshot.

    Changes are flagged at top-level granularity: one changed grandchild marks
    the whole top-level directory. The previous snapshot is never mutated.
    """
    plan = ChangePlan()
    previous_by_name = {entry.name: entry for entry in previous}

    for entry in current:
        reason = compare_entry(entry, previous_by_name.get(entry.name))
        entry.needs_backup = reason != ChangeReason.NO_CHANGE
        plan.reasons[entry.name] = reason
        if entry.needs_backup:
            plan.to_archive.append(entry.name)
        else:
            plan.unchanged.append(entry.name)

    current_names = {entry.name for entry in current}
    plan.removed = [entry.name for entry in previous if entry.name not in current_names]
    if plan.removed:
        logger.info("Directories no longer present in source: %s", ", ".join(plan.removed))

    return plan
