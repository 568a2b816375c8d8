from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from bpmnvault.bootstrap import import_all_models
from bpmnvault.database import create_db_engine
from bpmnvault.engine.kinds import FILE
from bpmnvault.engine.services.folder_service import FolderService
from bpmnvault.engine.version.service import VersioningEngine
from bpmnvault.exceptions import (
    DuplicateNameError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bpmnvault.models.base import Base


@pytest.fixture()
def session():
    import_all_models()
    engine = create_db_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def folders(session):
    return FolderService(session)


def test_create_and_rename_folder(folders):
    folder = folders.create_folder("Processes", description="BPMN", created_by="alice")
    assert folder.created_by == "alice"

    with pytest.raises(DuplicateNameError):
        folders.create_folder("Processes")
    with pytest.raises(ValidationError):
        folders.create_folder("   ")

    folders.create_folder("Archive")
    with pytest.raises(DuplicateNameError):
        folders.rename_folder(folder.id, "Archive")

    # Renaming to its own name is not a clash.
    assert folders.rename_folder(folder.id, "Processes").folder_name == "Processes"
    assert folders.update_description(folder.id, "updated").description == "updated"
    assert [f.folder_name for f in folders.list_folders()] == ["Archive", "Processes"]


def test_files_in_folder_and_root(session, folders):
    engine = VersioningEngine(session, FILE)
    folder = folders.create_folder("Docs")
    inside = engine.create(file_name="b.txt", data=b"1", folder_id=folder.id)
    root = engine.create(file_name="a.txt", data=b"1")

    assert [f.id for f in folders.files_in_folder(folder.id)] == [inside.id]
    assert [f.id for f in folders.files_in_folder(None)] == [root.id]
    with pytest.raises(NotFoundError):
        folders.files_in_folder(999)


def test_move_file_does_not_create_a_version(session, folders):
    engine = VersioningEngine(session, FILE)
    folder = folders.create_folder("Target")
    stored = engine.create(file_name="m.txt", data=b"1")

    folders.move_file_to_folder(stored.id, folder.id)
    assert stored.folder_id == folder.id
    assert stored.current_version == 1

    folders.move_file_to_folder(stored.id, None)
    assert stored.folder_id is None

    with pytest.raises(NotFoundError):
        folders.move_file_to_folder(stored.id, 999)
    with pytest.raises(NotFoundError):
        folders.move_file_to_folder(999, folder.id)


def test_delete_folder_requires_empty(session, folders):
    engine = VersioningEngine(session, FILE)
    folder = folders.create_folder("Busy")
    stored = engine.create(file_name="x", data=b"1", folder_id=folder.id)

    with pytest.raises(InvalidStateError) as exc:
        folders.delete_folder(folder.id)
    assert exc.value.details["file_count"] == 1

    folders.move_file_to_folder(stored.id, None)
    folders.delete_folder(folder.id)
    with pytest.raises(NotFoundError):
        folders.get_folder(folder.id)


def test_folder_stats(session, folders):
    engine = VersioningEngine(session, FILE)
    full = folders.create_folder("Full")
    folders.create_folder("Empty")
    engine.create(file_name="a", data=b"123", folder_id=full.id)
    engine.create(file_name="b", data=b"45", folder_id=full.id)

    stats = {row["folder_name"]: row for row in folders.folder_stats()}
    assert stats["Full"]["file_count"] == 2
    assert stats["Full"]["total_size"] == 5
    assert stats["Empty"] == {"id": stats["Empty"]["id"], "folder_name": "Empty", "file_count": 0, "total_size": 0}
