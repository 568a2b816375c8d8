"""
File Models
Generic stored files, their folders and version history.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)

from bpmnvault.engine.models.versioned import VersionedResourceMixin, VersionSnapshotMixin
from bpmnvault.models.base import Base


class Folder(Base):
    __tablename__ = "meta_folders"

    id = Column(Integer, primary_key=True)
    folder_name = Column(String(255), unique=True, nullable=False)
    description = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class StoredFile(VersionedResourceMixin, Base):
    __tablename__ = "meta_files"

    file_type = Column(String(100))
    file_size = Column(Integer, default=0)
    data = Column(LargeBinary)

    folder_id = Column(
        Integer, ForeignKey("meta_folders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_public = Column(Boolean, default=False, nullable=False)
    is_template = Column(Boolean, default=False, nullable=False)

    # Points at the snapshot taken by the latest content-changing save.
    # Plain column: a FK here would make meta_files <-> meta_file_versions cyclic.
    current_version_id = Column(Integer, nullable=True)

    # Assignments reference ids without a FK; ids must never be reused.
    __table_args__ = {"sqlite_autoincrement": True}

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<StoredFile id={self.id} file_name={self.file_name!r} "
            f"current_version={self.current_version}>"
        )


class FileVersion(VersionSnapshotMixin, Base):
    __tablename__ = "meta_file_versions"

    file_id = Column(
        Integer,
        ForeignKey("meta_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_type = Column(String(100))
    file_size = Column(Integer, default=0)
    data = Column(LargeBinary)

    __table_args__ = (
        UniqueConstraint("file_id", "version_number", name="uq_file_version_number"),
        Index("ix_file_versions_created", "file_id", "created_at"),
    )
