"""Manifest wire schema: the persisted JSON shape of a snapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator

from dirbackup.models.snapshot import DIRECTORY_KIND, DirectoryEntry
from dirbackup.services.datetime_service import format_iso, parse_datetime


class ManifestChild(BaseModel):
    """A descendant directory as persisted: no further nesting."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    kind: str = DIRECTORY_KIND
    mod_time: datetime = Field(alias="modTime")

    @field_validator("mod_time", mode="before")
    @classmethod
    def parse_mod_time(cls, v: Any) -> datetime:
        if not isinstance(v, (str, datetime)):
            msg = f"modTime must be an ISO-8601 string, got {type(v).__name__}"
            raise ValueError(msg)
        return parse_datetime(v)

    @field_serializer("mod_time")
    def serialize_mod_time(self, v: datetime) -> str:
        return format_iso(v)

    def to_entry(self) -> DirectoryEntry:
        return DirectoryEntry(name=self.name, kind=self.kind, mod_time=self.mod_time)


class ManifestEntry(ManifestChild):
    """A top-level directory as persisted."""

    children: list[ManifestChild] | None = None
    archive_path: str | None = Field(default=None, alias="archivePath")

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> ManifestEntry:
        children = [
            ManifestChild(name=child.name, kind=child.kind, mod_time=child.mod_time)
            for child in entry.children
        ]
        return cls(
            name=entry.name,
            kind=entry.kind,
            mod_time=entry.mod_time,
            children=children or None,
            archive_path=entry.archive_path,
        )

    def to_entry(self) -> DirectoryEntry:
        return DirectoryEntry(
            name=self.name,
            kind=self.kind,
            mod_time=self.mod_time,
            children=[child.to_entry() for child in self.children or []],
            archive_path=self.archive_path,
        )


manifest_adapter: TypeAdapter[list[ManifestEntry]] = TypeAdapter(list[ManifestEntry])


def dump_manifest(snapshot: list[DirectoryEntry]) -> bytes:
    """Serialize a snapshot to pretty-printed manifest JSON."""
    entries = [ManifestEntry.from_entry(entry) for entry in snapshot]
    return manifest_adapter.dump_json(entries, indent=2, by_alias=True, exclude_none=True)


def parse_manifest(raw: str | bytes) -> list[DirectoryEntry]:
    """Parse manifest JSON into snapshot entries.

    Raises pydantic.ValidationError on malformed JSON or schema violations.
    """
    return [entry.to_entry() for entry in manifest_adapter.validate_json(raw)]
