"""
Diagram Models
BPMN diagrams stored as XML text plus their version snapshots.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, UniqueConstraint

from bpmnvault.engine.models.versioned import VersionedResourceMixin, VersionSnapshotMixin
from bpmnvault.models.base import Base


class Diagram(VersionedResourceMixin, Base):
    __tablename__ = "meta_diagrams"

    content = Column(Text, nullable=False)

    # Assignments reference ids without a FK; ids must never be reused.
    __table_args__ = {"sqlite_autoincrement": True}

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Diagram id={self.id} file_name={self.file_name!r} "
            f"current_version={self.current_version}>"
        )


class DiagramVersion(VersionSnapshotMixin, Base):
    __tablename__ = "meta_diagram_versions"

    diagram_id = Column(
        Integer,
        ForeignKey("meta_diagrams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(Text)

    __table_args__ = (
        UniqueConstraint("diagram_id", "version_number", name="uq_diagram_version_number"),
        Index("ix_diagram_versions_created", "diagram_id", "created_at"),
    )

    @property
    def has_metadata(self) -> bool:
        return bool(self.metadata_json)
