"""Tests for the change detection service."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from dirbackup.models.snapshot import DirectoryEntry
from dirbackup.services.change_service import (
    ChangeReason,
    compare_entry,
    detect_changes,
)

T0 = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
T1 = T0 + timedelta(minutes=5)


def _entry(
    name: str,
    mod_time: datetime = T0,
    children: dict[str, datetime] | None = None,
) -> DirectoryEntry:
    return DirectoryEntry(
        name=name,
        mod_time=mod_time,
        children=[DirectoryEntry(name=n, mod_time=t) for n, t in (children or {}).items()],
    )


class TestCompareEntry:
    def test_missing_previous_is_new_directory(self) -> None:
        assert compare_entry(_entry("a"), None) == ChangeReason.NEW_DIRECTORY

    def test_identical_entries_have_no_change(self) -> None:
        current = _entry("a", children={"x": T0, "x/y": T0})
        previous = _entry("a", children={"x": T0, "x/y": T0})
        assert compare_entry(current, previous) == ChangeReason.NO_CHANGE

    def test_top_level_mod_time_change(self) -> None:
        assert compare_entry(_entry("a", T1), _entry("a", T0)) == ChangeReason.MOD_TIME_CHANGED

    def test_child_mod_time_change(self) -> None:
        current = _entry("a", children={"x": T0, "x/y": T1})
        previous = _entry("a", children={"x": T0, "x/y": T0})
        assert compare_entry(current, previous) == ChangeReason.CHILDREN_CHANGED

    def test_child_added(self) -> None:
        current = _entry("a", children={"x": T0, "z": T0})
        previous = _entry("a", children={"x": T0})
        assert compare_entry(current, previous) == ChangeReason.CHILDREN_CHANGED

    def test_child_removed(self) -> None:
        current = _entry("a", children={})
        previous = _entry("a", children={"x": T0})
        assert compare_entry(current, previous) == ChangeReason.CHILDREN_CHANGED

    def test_child_renamed_with_same_mod_time(self) -> None:
        """A rename keeps the mod time of the renamed directory but changes the name set."""
        current = _entry("a", children={"x": T0, "x/renamed": T0})
        previous = _entry("a", children={"x": T0, "x/original": T0})
        assert compare_entry(current, previous) == ChangeReason.CHILDREN_CHANGED

    def test_same_instant_in_another_offset_is_unchanged(self) -> None:
        jakarta = timezone(timedelta(hours=7))
        current = _entry("a", T0.astimezone(jakarta), children={"x": T0.astimezone(jakarta)})
        previous = _entry("a", T0, children={"x": T0})
        assert compare_entry(current, previous) == ChangeReason.NO_CHANGE


class TestDetectChanges:
    def test_identical_snapshots_flag_nothing(self) -> None:
        previous = [_entry("a", children={"x": T0}), _entry("b")]
        current = [_entry("a", children={"x": T0}), _entry("b")]
        plan = detect_changes(current, previous)
        assert plan.to_archive == []
        assert plan.unchanged == ["a", "b"]
        assert all(not entry.needs_backup for entry in current)

    def test_new_top_level_directory_is_flagged(self) -> None:
        previous = [_entry("a")]
        current = [_entry("a"), _entry("new")]
        plan = detect_changes(current, previous)
        assert plan.to_archive == ["new"]
        assert plan.reasons["new"] == ChangeReason.NEW_DIRECTORY
        assert current[1].needs_backup is True
        assert current[0].needs_backup is False

    def test_removed_directories_are_reported(self) -> None:
        previous = [_entry("a"), _entry("gone")]
        current = [_entry("a")]
        plan = detect_changes(current, previous)
        assert plan.removed == ["gone"]
        assert plan.to_archive == []

    def test_deep_change_flags_whole_top_level_directory(self) -> None:
        previous = [_entry("a", children={"x": T0, "x/y": T0, "x/y/z": T0})]
        current = [_entry("a", children={"x": T0, "x/y": T0, "x/y/z": T1})]
        plan = detect_changes(current, previous)
        assert plan.to_archive == ["a"]

    def test_previous_snapshot_is_not_mutated(self) -> None:
        previous = [_entry("a", children={"x": T0})]
        current = [_entry("a", T1, children={"x": T1})]
        detect_changes(current, previous)
        assert previous[0].mod_time == T0
        assert previous[0].children[0].mod_time == T0
        assert previous[0].needs_backup is False

    def test_mixed(self) -> None:
        previous = [
            _entry("keep", children={"c": T0}),
            _entry("touched"),
            _entry("grown", children={"c": T0}),
        ]
        current = [
            _entry("keep", children={"c": T0}),
            _entry("touched", T1),
            _entry("grown", children={"c": T0, "d": T0}),
            _entry("fresh"),
        ]
        plan = detect_changes(current, previous)
        assert plan.to_archive == ["touched", "grown", "fresh"]
        assert plan.unchanged == ["keep"]
        assert plan.reasons == {
            "keep": ChangeReason.NO_CHANGE,
            "touched": ChangeReason.MOD_TIME_CHANGED,
            "grown": ChangeReason.CHILDREN_CHANGED,
            "fresh": ChangeReason.NEW_DIRECTORY,
        }
