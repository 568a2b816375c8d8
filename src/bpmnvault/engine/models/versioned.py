"""
Shared columns for versioned resources (Diagram, StoredFile) and their
immutable snapshots.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr


class VersionedResourceMixin:
    """
    Live row of a versioned resource.

    ``current_version`` starts at 1 and advances by one per content-changing
    save. ``lock_version`` is SQLAlchemy's optimistic-lock counter and moves on
    every UPDATE of the row.
    """

    id = Column(Integer, primary_key=True)
    file_name = Column(String(255), nullable=False)

    metadata_json = Column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    description = Column(Text, nullable=True)
    tags = Column(String(500), nullable=True)

    current_version = Column(Integer, nullable=False, default=1)
    lock_version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String(100))
    updated_at = Column(DateTime, default=datetime.utcnow)
    updated_by = Column(String(100))

    @declared_attr
    def __mapper_args__(cls):
        return {"version_id_col": cls.lock_version}


class VersionSnapshotMixin:
    """Immutable copy of a resource's state before a content-changing save."""

    id = Column(Integer, primary_key=True)
    version_number = Column(Integer, nullable=False)

    file_name = Column(String(255))
    metadata_json = Column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    description = Column(Text, nullable=True)
    tags = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100))
    version_notes = Column(String(1000))

    @property
    def version_label(self) -> str:
        return f"Version {self.version_number}"
