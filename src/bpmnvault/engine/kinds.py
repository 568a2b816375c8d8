"""
Resource kinds shared by the permission and version layers.

A ResourceKind names the live model, its snapshot model and which columns
take part in snapshots and dirty checks, so one engine serves diagrams and
files alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Type

from bpmnvault.engine.models.diagram import Diagram, DiagramVersion
from bpmnvault.engine.models.file import FileVersion, StoredFile
from bpmnvault.exceptions import ValidationError


@dataclass(frozen=True)
class ResourceKind:
    name: str
    label: str
    model: Type
    version_model: Type
    parent_fk: str
    content_field: str
    # Copied into every snapshot.
    snapshot_fields: Tuple[str, ...]
    # A change to any of these is a content-changing save.
    tracked_fields: Tuple[str, ...]
    # Applied even by a save that writes no snapshot.
    untracked_fields: Tuple[str, ...] = ("file_name",)
    size_field: Optional[str] = None
    tracks_current: bool = False

    @property
    def writable_fields(self) -> Tuple[str, ...]:
        # The size field is derived from content, never written directly.
        return self.tracked_fields + self.untracked_fields

    @property
    def restore_fields(self) -> Tuple[str, ...]:
        """Copied back from a snapshot by restore. Names and types stay as they are."""
        if self.size_field:
            return self.tracked_fields + (self.size_field,)
        return self.tracked_fields

    def parent_column(self):
        return getattr(self.version_model, self.parent_fk)

    def __str__(self) -> str:
        return self.name


DIAGRAM = ResourceKind(
    name="diagram",
    label="Diagram",
    model=Diagram,
    version_model=DiagramVersion,
    parent_fk="diagram_id",
    content_field="content",
    snapshot_fields=("file_name", "content", "metadata_json", "description", "tags"),
    tracked_fields=("content", "metadata_json", "description", "tags"),
)

FILE = ResourceKind(
    name="file",
    label="File",
    model=StoredFile,
    version_model=FileVersion,
    parent_fk="file_id",
    content_field="data",
    snapshot_fields=(
        "file_name",
        "file_type",
        "file_size",
        "data",
        "metadata_json",
        "description",
        "tags",
    ),
    tracked_fields=("data", "metadata_json", "description", "tags"),
    untracked_fields=("file_name", "file_type"),
    size_field="file_size",
    tracks_current=True,
)

KINDS = {kind.name: kind for kind in (DIAGRAM, FILE)}


def get_kind(name: str) -> ResourceKind:
    try:
        return KINDS[str(name).lower()]
    except KeyError:
        raise ValidationError(f"Unknown resource kind: {name}", field="resource_kind")
