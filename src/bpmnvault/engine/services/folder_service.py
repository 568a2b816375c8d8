from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from bpmnvault.context import get_acting_username
from bpmnvault.engine.models.file import Folder, StoredFile
from bpmnvault.exceptions import (
    DuplicateNameError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class FolderService:
    """Flat folders for stored files; a file with no folder lives at the root."""

    def __init__(self, session: Session):
        self.session = session

    def get_folder(self, folder_id: int) -> Folder:
        folder = self.session.get(Folder, folder_id)
        if not folder:
            raise NotFoundError("Folder", folder_id)
        return folder

    def get_by_name(self, folder_name: str) -> Optional[Folder]:
        return self.session.query(Folder).filter(Folder.folder_name == folder_name).first()

    def list_folders(self) -> List[Folder]:
        return self.session.query(Folder).order_by(Folder.folder_name.asc()).all()

    def _check_name(self, folder_name: str, exclude_id: Optional[int] = None) -> str:
        name = (folder_name or "").strip()
        if not name:
            raise ValidationError("Folder name is required", field="folder_name")
        query = self.session.query(Folder).filter(Folder.folder_name == name)
        if exclude_id is not None:
            query = query.filter(Folder.id != exclude_id)
        if query.first():
            raise DuplicateNameError(f"Folder already exists: {name}", folder_name=name)
        return name

    def create_folder(
        self,
        folder_name: str,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Folder:
        name = self._check_name(folder_name)
        now = datetime.utcnow()
        folder = Folder(
            folder_name=name,
            description=description,
            created_by=created_by or get_acting_username(),
            created_at=now,
            updated_at=now,
        )
        self.session.add(folder)
        self.session.flush()
        logger.info(f"Created folder {name} ({folder.id})")
        return folder

    def rename_folder(self, folder_id: int, new_name: str) -> Folder:
        folder = self.get_folder(folder_id)
        folder.folder_name = self._check_name(new_name, exclude_id=folder.id)
        folder.updated_at = datetime.utcnow()
        self.session.flush()
        return folder

    def update_description(self, folder_id: int, description: Optional[str]) -> Folder:
        folder = self.get_folder(folder_id)
        folder.description = description
        folder.updated_at = datetime.utcnow()
        self.session.flush()
        return folder

    def delete_folder(self, folder_id: int) -> None:
        folder = self.get_folder(folder_id)
        count = self.session.query(StoredFile).filter(StoredFile.folder_id == folder.id).count()
        if count:
            raise InvalidStateError(
                f"Folder {folder.folder_name} is not empty ({count} files)",
                folder_id=folder.id,
                file_count=count,
            )
        self.session.delete(folder)
        self.session.flush()
        logger.info(f"Deleted folder {folder.folder_name}")

    def files_in_folder(self, folder_id: Optional[int]) -> List[StoredFile]:
        query = self.session.query(StoredFile)
        if folder_id is None:
            query = query.filter(StoredFile.folder_id.is_(None))
        else:
            self.get_folder(folder_id)
            query = query.filter(StoredFile.folder_id == folder_id)
        return query.order_by(StoredFile.file_name.asc()).all()

    def move_file_to_folder(self, file_id: int, folder_id: Optional[int]) -> StoredFile:
        stored = self.session.get(StoredFile, file_id)
        if not stored:
            raise NotFoundError("File", file_id)
        if folder_id is not None:
            self.get_folder(folder_id)
        stored.folder_id = folder_id
        self.session.flush()
        logger.info(f"Moved file {file_id} to folder {folder_id or 'root'}")
        return stored

    def folder_stats(self) -> List[Dict[str, Any]]:
        rows = (
            self.session.query(
                Folder,
                func.count(StoredFile.id),
                func.coalesce(func.sum(StoredFile.file_size), 0),
            )
            .outerjoin(StoredFile, StoredFile.folder_id == Folder.id)
            .group_by(Folder.id)
            .order_by(Folder.folder_name.asc())
            .all()
        )
        return [
            {
                "id": folder.id,
                "folder_name": folder.folder_name,
                "file_count": count,
                "total_size": int(total),
            }
            for folder, count, total in rows
        ]
